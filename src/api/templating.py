from pathlib import Path

from fastapi.templating import Jinja2Templates

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def format_amount(value: int | None, currency: str = "") -> str:
    """Minor units to a display string, e.g. 2500050 NGN -> 'NGN 25,000.50'."""
    amount = f"{(value or 0) / 100:,.2f}"
    return f"{currency} {amount}".strip()


templates.env.filters["amount"] = format_amount
