from datetime import datetime
from typing import Optional

from .weather import WeatherReport


PERSONA = {
    "es": (
        "Eres AURORAEL, una IA filósofa crítico-teórica (Frankfurt + Žižek + Lacan). "
        "Responde con precisión, profundidad y claridad."
    ),
    "en": (
        "You are AURORAEL, a critical-theory philosophical system. "
        "Respond with depth and precision."
    ),
}

LOCATION_NOTE = {
    "es": "Ubicación conocida del usuario: {location}",
    "en": "Known user location: {location}",
}

ASK_LOCATION = {
    "es": "¿De qué ciudad hablas? Indica ciudad y país (Ciudad, País).",
    "en": "Which city/country do you mean? Please provide city and country (City, Country).",
}

EMPTY_PROMPT = "Prompt vacío"

LOCATION_ERROR = {
    "es": "No pude resolver esa ubicación. Prueba con «Ciudad, País».",
    "en": "I could not resolve that location. Try \"City, Country\".",
}

RATE_LIMITED = {
    "es": "Servidor saturado. Reintenta en unos segundos.",
    "en": "The server is saturated. Please retry in a few seconds.",
}

MODEL_FAILED = {
    "es": "Error al consultar el modelo.",
    "en": "The language model request failed.",
}

BUSY = "Servidor ocupado, demasiadas solicitudes simultáneas."

INTERNAL_ERROR = "Error interno del servidor."

# (upper bound in °C, remark); the first band whose bound exceeds the temperature wins.
_REMARKS = {
    "es": [
        (5.0, "El frío obliga a recogerse: quizá también el pensamiento necesita abrigo."),
        (15.0, "Un clima templado para la crítica: ni el fervor ni la indiferencia."),
        (26.0, "Tiempo amable; sospecha de toda comodidad que parezca natural."),
        (float("inf"), "El calor disuelve las certezas; hidrátate y duda con calma."),
    ],
    "en": [
        (5.0, "Cold weather turns us inward; perhaps thought needs a coat too."),
        (15.0, "A temperate climate for critique: neither fervor nor indifference."),
        (26.0, "Pleasant weather; be suspicious of any comfort that feels natural."),
        (float("inf"), "Heat dissolves certainties; stay hydrated and doubt calmly."),
    ],
}

_WEEKDAYS = {
    "es": ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"],
    "en": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"],
}

_MONTHS = {
    "es": [
        "enero", "febrero", "marzo", "abril", "mayo", "junio",
        "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
    ],
    "en": [
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ],
}


def _lang(lang: str) -> str:
    return "en" if lang == "en" else "es"


def reflective_remark(temp: Optional[float], lang: str) -> str:
    bands = _REMARKS[_lang(lang)]
    if temp is None:
        return bands[1][1]
    for bound, remark in bands:
        if temp < bound:
            return remark
    return bands[-1][1]


def _place(report: WeatherReport) -> str:
    return f"{report.name}, {report.country}" if report.country else report.name


def weather_reply(report: WeatherReport, lang: str) -> str:
    remark = reflective_remark(report.temp, lang)
    if _lang(lang) == "en":
        return (
            f"In {_place(report)}: Temp {report.temp}°C, feels like {report.feels}°C. "
            f"{report.desc}. {remark}"
        )
    return (
        f"En {_place(report)}: Temp {report.temp}°C, sensación {report.feels}°C. "
        f"{report.desc}. {remark}"
    )


def format_clock(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def format_long_date(moment: datetime, lang: str) -> str:
    lang = _lang(lang)
    weekday = _WEEKDAYS[lang][moment.weekday()]
    month = _MONTHS[lang][moment.month - 1]
    if lang == "en":
        return f"{weekday}, {month} {moment.day}, {moment.year}"
    return f"{weekday}, {moment.day} de {month} de {moment.year}"


def time_reply(place: str, moment: datetime, lang: str) -> str:
    if _lang(lang) == "en":
        return f"Local time in {place}: {format_clock(moment)}"
    return f"Hora local en {place}: {format_clock(moment)}"


def date_reply(place: str, moment: datetime, lang: str) -> str:
    if _lang(lang) == "en":
        return f"Local date in {place}: {format_long_date(moment, lang)}"
    return f"Fecha local en {place}: {format_long_date(moment, lang)}"
