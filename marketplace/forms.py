from django import forms
from django.utils.translation import gettext_lazy as _

from .constants import LISTING_MAX_PHOTOS, LISTING_TITLE_MIN_LENGTH, MESSAGE_MAX_LENGTH
from .models import Listing


def parse_price(value):
    """Parse a user-typed euro price ("29,500") into a whole number, or None."""
    cleaned = (value or "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        raise forms.ValidationError(_("Price must be a valid number."))
    if number != number or number in (float("inf"), float("-inf")):
        raise forms.ValidationError(_("Price must be a valid number."))
    if number < 0:
        raise forms.ValidationError(_("Price cannot be negative."))
    return round(number)


class LoginForm(forms.Form):
    MODE_SIGNIN = "signin"
    MODE_SIGNUP = "signup"
    MODE_CHOICES = [
        (MODE_SIGNIN, _("Sign in")),
        (MODE_SIGNUP, _("Create account")),
    ]

    mode = forms.ChoiceField(
        choices=MODE_CHOICES, initial=MODE_SIGNIN, widget=forms.RadioSelect,
    )
    email = forms.EmailField(
        label=_("Email"),
        error_messages={"required": _("Email is required.")},
        widget=forms.EmailInput(attrs={"placeholder": "you@example.com"}),
    )
    password = forms.CharField(
        label=_("Password"),
        strip=True,
        error_messages={"required": _("Password is required.")},
        widget=forms.PasswordInput,
    )

    def clean_email(self):
        return self.cleaned_data["email"].strip().lower()

    def clean(self):
        cleaned = super().clean()
        password = cleaned.get("password") or ""
        if cleaned.get("mode") == self.MODE_SIGNUP and password and len(password) < 6:
            self.add_error("password", _("Password must be at least 6 characters."))
        return cleaned


class MultipleFileInput(forms.ClearableFileInput):
    allow_multiple_selected = True


class MultiplePhotoField(forms.FileField):
    def __init__(self, *args, **kwargs):
        kwargs.setdefault("widget", MultipleFileInput(attrs={"accept": "image/*"}))
        super().__init__(*args, **kwargs)

    def clean(self, data, initial=None):
        single_clean = super().clean
        if isinstance(data, (list, tuple)):
            files = [single_clean(d, initial) for d in data]
        elif data:
            files = [single_clean(data, initial)]
        else:
            return []
        for uploaded in files:
            content_type = getattr(uploaded, "content_type", "") or ""
            if not content_type.startswith("image/"):
                raise forms.ValidationError(_("Only image files can be uploaded."))
        return files


class ListingForm(forms.ModelForm):
    price = forms.CharField(
        required=False, label=_("Price (€)"),
        widget=forms.TextInput(attrs={"inputmode": "numeric", "placeholder": "e.g. 29500"}),
    )
    photos = MultiplePhotoField(
        required=False, label=_("Photos"),
        help_text=_("Up to %(count)s images.") % {"count": LISTING_MAX_PHOTOS},
    )

    class Meta:
        model = Listing
        fields = ["category", "title", "location", "condition", "description"]
        widgets = {
            "title": forms.TextInput(attrs={"placeholder": "e.g. 2002 Honda S2000 AP1"}),
            "location": forms.TextInput(attrs={"placeholder": "e.g. Dublin"}),
            "description": forms.Textarea(
                attrs={"placeholder": "Spec, history, condition, extras…", "rows": 6},
            ),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["condition"].initial = "Used"

    def clean_title(self):
        title = self.cleaned_data["title"].strip()
        if len(title) < LISTING_TITLE_MIN_LENGTH:
            raise forms.ValidationError(
                _("Title must be at least %(count)s characters.")
                % {"count": LISTING_TITLE_MIN_LENGTH}
            )
        return title

    def clean_price(self):
        return parse_price(self.cleaned_data.get("price"))

    def clean_photos(self):
        photos = self.cleaned_data.get("photos") or []
        return photos[:LISTING_MAX_PHOTOS]

    def clean_location(self):
        return self.cleaned_data.get("location", "").strip()

    def clean_description(self):
        return self.cleaned_data.get("description", "").strip()

    def save(self, commit=True):
        listing = super().save(commit=False)
        listing.price_eur = self.cleaned_data.get("price")
        if commit:
            listing.save()
        return listing


class ListingEditForm(forms.ModelForm):
    price = forms.CharField(
        required=False, label=_("Price (€)"),
        widget=forms.NumberInput(attrs={"step": "1"}),
    )

    class Meta:
        model = Listing
        fields = ["title", "description"]
        widgets = {
            "description": forms.Textarea(attrs={"rows": 4}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.instance and self.instance.price_eur is not None:
            self.initial["price"] = self.instance.price_eur

    def clean_title(self):
        title = self.cleaned_data["title"].strip()
        if not title:
            raise forms.ValidationError(_("Title cannot be empty."))
        return title

    def clean_price(self):
        value = self.cleaned_data.get("price")
        try:
            return parse_price(value)
        except forms.ValidationError:
            raise forms.ValidationError(_("Price must be a number."))

    def clean_description(self):
        return self.cleaned_data.get("description", "").strip()

    def save(self, commit=True):
        listing = super().save(commit=False)
        listing.price_eur = self.cleaned_data.get("price")
        if commit:
            listing.save()
        return listing


class MessageForm(forms.Form):
    body = forms.CharField(
        label=_("Message"),
        widget=forms.Textarea(attrs={
            "rows": 3,
            "maxlength": MESSAGE_MAX_LENGTH,
            "placeholder": _("Write a message…"),
        }),
        error_messages={"required": _("Message cannot be empty.")},
    )
