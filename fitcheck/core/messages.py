"""
User-facing text for quality verdicts.
Keys follow the upload screen's scheme: "qualityError" + issue name with the
first letter capitalized and the first hyphen dropped.
"""
from typing import Dict, Iterable

from fitcheck.domain.models import IssueKind

DEFAULT_LANGUAGE = "en"

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "analyzingImageQuality": "Analyzing image quality...",
        "imageQualityError": "The image quality is too low",
        "qualityErrorLowresolution": "the resolution is too low",
        "qualityErrorToodark": "the image is too dark",
        "qualityErrorBlurry": "the image is blurry",
        "qualityErrorSuggestion": "Please upload a clearer, well-lit photo of at least 300x300 pixels",
        "fileTooLargeError": "File is too large. Maximum size is {size}MB.",
        "unsupportedImageTypeError": "Unsupported image type: {mime}.",
        "imageProcessingError": "Could not process the image.",
        "imageFetchError": "Could not fetch or process the image from the URL.",
    },
    "es": {
        "analyzingImageQuality": "Analizando la calidad de la imagen...",
        "imageQualityError": "La calidad de la imagen es demasiado baja",
        "qualityErrorLowresolution": "la resolución es demasiado baja",
        "qualityErrorToodark": "la imagen está demasiado oscura",
        "qualityErrorBlurry": "la imagen está borrosa",
        "qualityErrorSuggestion": "Sube una foto más nítida y bien iluminada de al menos 300x300 píxeles",
        "fileTooLargeError": "El archivo es demasiado grande. El tamaño máximo es {size}MB.",
        "unsupportedImageTypeError": "Tipo de imagen no admitido: {mime}.",
        "imageProcessingError": "No se pudo procesar la imagen.",
        "imageFetchError": "No se pudo obtener o procesar la imagen desde la URL.",
    },
}


def message_key(issue: IssueKind) -> str:
    name = IssueKind(issue).value
    return "qualityError" + name[0].upper() + name[1:].replace("-", "", 1)


def translate(key: str, language: str = DEFAULT_LANGUAGE, **params) -> str:
    """Looks up `key` in `language`, then English, then returns the key itself."""
    catalog = MESSAGES.get(language, {})
    text = catalog.get(key) or MESSAGES[DEFAULT_LANGUAGE].get(key) or key
    for name, value in params.items():
        text = text.replace("{" + name + "}", str(value))
    return text


def format_quality_error(issues: Iterable[IssueKind], language: str = DEFAULT_LANGUAGE) -> str:
    """Joins issue messages into the single error line shown on rejection."""
    details = ", ".join(translate(message_key(i), language) for i in issues)
    return f"{translate('imageQualityError', language)}: {details}. {translate('qualityErrorSuggestion', language)}"
