from __future__ import annotations

from typing import Any, Dict, Optional
from pathlib import Path
import os
import time

import typer
from rich.console import Console
import httpx


app = typer.Typer()
console = Console()
trace_console = Console(stderr=True)

LOCATION_PHRASES = (
    "¿de qué ciudad",
    "indica ciudad y país",
    "which city/country",
    "please provide city and country",
)


def server_asks_for_location(data: Dict[str, Any]) -> bool:
    if data.get("pendingLocation"):
        return True
    text = str(data.get("result") or "").lower()
    return any(phrase in text for phrase in LOCATION_PHRASES)


def send_prompt(
    url: str,
    prompt: str,
    session_id: Optional[str],
    location: str = "",
    time_zone: str = "",
    max_attempts: int = 2,
    timeout_sec: float = 90.0,
    backoff_sec: float = 4.5,
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """POST one prompt; timeouts and network errors are retried with a growing backoff."""
    body: Dict[str, Any] = {"prompt": prompt}
    if session_id:
        body["sessionId"] = session_id
    if location:
        body["location"] = location
    if time_zone:
        body["timeZone"] = time_zone

    http = client or httpx.Client(timeout=timeout_sec)
    try:
        for attempt in range(1, max_attempts + 1):
            try:
                resp = http.post(url, json=body, headers={"Content-Type": "application/json"})
            except httpx.TimeoutException:
                if attempt < max_attempts:
                    time.sleep(backoff_sec)
                    backoff_sec *= 1.6
                    continue
                return {
                    "error": "rate_limit",
                    "retryAfter": None,
                    "detalle": "Request timed out twice; assuming server busy.",
                    "status": 429,
                }
            except httpx.HTTPError as e:
                if attempt < max_attempts:
                    time.sleep(backoff_sec)
                    backoff_sec *= 1.6
                    continue
                return {"error": "network", "detalle": str(e)}

            try:
                data = resp.json()
            except ValueError:
                data = {"detalle": resp.text}
            if not isinstance(data, dict):
                data = {"detalle": str(data)}

            if resp.status_code == 429:
                retry_after = resp.headers.get("Retry-After")
                return {
                    "error": "rate_limit",
                    "retryAfter": int(retry_after) if retry_after and retry_after.isdigit() else None,
                    "detalle": data.get("detalle") or data.get("error"),
                    "sessionId": data.get("sessionId"),
                    "status": 429,
                }
            if resp.status_code >= 400:
                data.setdefault("error", f"Server returned {resp.status_code}")
                data["status"] = resp.status_code
            return data
    finally:
        if client is None:
            http.close()
    return {"error": "max_retries", "detalle": "Máximo de reintentos alcanzado"}


@app.command()
def cli(
    prompt_str: Optional[str] = typer.Option(
        None, "--prompt", help="Send a single prompt and exit unless --interactive is given."
    ),
    session_id: Optional[str] = typer.Option(
        None, "--session", "-s", help="Reuse an existing server session id."
    ),
    time_zone: Optional[str] = typer.Option(
        None, "--tz", envvar="TZ", help="IANA time zone sent with each request (e.g. Europe/Madrid)."
    ),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Append the conversation to a file."
    ),
    interactive: bool = typer.Option(
        False, "--interactive", "-i", help="Keep chatting after the first response."
    ),
) -> None:
    server_url = os.getenv("AURORAEL_URL", "http://localhost:3000")
    url = f"{server_url.rstrip('/')}/api/chat"
    state: Dict[str, Any] = {"session_id": session_id, "expecting_location": False}

    def run_once(one_prompt: str) -> str:
        location = one_prompt if state["expecting_location"] else ""
        status_msg = "Sending location..." if location else "Asking Aurorael..."
        with console.status(status_msg):
            data = send_prompt(url, one_prompt, state["session_id"], location, time_zone or "")
        if data.get("sessionId"):
            state["session_id"] = data["sessionId"]

        if data.get("error") == "rate_limit":
            state["expecting_location"] = False
            retry_after = data.get("retryAfter")
            msg = f"Server saturated (429). Retry in {retry_after}s." if retry_after else "Server saturated (429)."
            trace_console.print(msg, style="bold yellow")
            if data.get("detalle"):
                trace_console.print(str(data["detalle"]), style="dim")
            return ""
        if data.get("error"):
            state["expecting_location"] = False
            trace_console.print(str(data["error"]), style="bold red")
            if data.get("detalle"):
                trace_console.print(str(data["detalle"]), style="dim")
            return ""

        text = str(data.get("result") or "")
        state["expecting_location"] = server_asks_for_location(data)
        console.print(text)
        if data.get("videoId"):
            console.print(f"https://www.youtube.com/watch?v={data['videoId']}", style="cyan")
        if state["expecting_location"]:
            console.print("(City, Country, e.g. Madrid, España)", style="dim")
        return text

    def save(prompt: str, answer: str) -> None:
        if not (output_file and answer):
            return
        try:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            with output_file.open("a", encoding="utf-8") as f:
                f.write(f"> {prompt}\n\n{answer}\n\n")
        except OSError as e:
            trace_console.print(f"Failed to write file: {e}", style="bold red")

    if prompt_str:
        save(prompt_str, run_once(prompt_str.strip()))

    if interactive or not prompt_str:
        while True:
            try:
                user_in = typer.prompt("You (type 'exit' to quit)")
            except (EOFError, KeyboardInterrupt, typer.Abort):
                break
            if not user_in or not user_in.strip():
                continue
            if user_in.strip().lower() in {"exit", "quit", "q"}:
                break
            save(user_in.strip(), run_once(user_in.strip()))

    if state["session_id"]:
        trace_console.print(f"session: {state['session_id']}", style="dim")


if __name__ == "__main__":
    app()
