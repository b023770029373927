import os

# Validator Configuration
class Config:
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
    IMAGE_TIMEOUT = float(os.environ.get("IMAGE_TIMEOUT", "30"))
    SHEET_TIMEOUT = float(os.environ.get("SHEET_TIMEOUT", "15"))
    GEMINI_TIMEOUT = float(os.environ.get("GEMINI_TIMEOUT", "60"))
    OUTPUT_FOLDER = os.environ.get("OUTPUT_FOLDER", "outputs")
    REPORT_BASENAME = "validation_results"
    ALLOWED_FORMATS = {'xlsx', 'csv'}
