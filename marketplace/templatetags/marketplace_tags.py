from django import template

from marketplace.models import Category

register = template.Library()


@register.filter
def price_eur(value):
    """Format a whole-euro price as "29,500 €"; missing prices show "€—"."""
    if value is None or value == "":
        return "€—"
    try:
        amount = int(value)
    except (TypeError, ValueError):
        return "€—"
    return f"{amount:,} €"


@register.filter
def category_label(value):
    try:
        return Category(value).label
    except ValueError:
        return value
