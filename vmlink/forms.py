"""Forms for the vmlink app.

The settings form mirrors the three values the companion needs (token,
hostname and port); the augment form carries a page captured from the
tracker so it can be processed server-side.
"""

from __future__ import annotations

from django import forms

from .engine.source import SETTING_KEYS, ConfigSource


class CompanionSettingsForm(forms.Form):
    """Token, hostname and port of the companion service."""

    token = forms.CharField(
        max_length=512,
        label='Token',
        help_text='Token set in varroa.',
        widget=forms.TextInput(attrs={'placeholder': 'insert_your_token'}),
    )
    host = forms.CharField(
        max_length=255,
        label='Hostname',
        help_text='Your seedbox hostname set in varroa.',
        widget=forms.TextInput(attrs={'placeholder': 'http://hostname.com'}),
    )
    port = forms.IntegerField(
        min_value=1,
        max_value=65535,
        label='Port',
        help_text='Your seedbox port set in varroa.',
        widget=forms.TextInput(attrs={'placeholder': 'your_chosen_port'}),
    )

    def clean_token(self) -> str:
        token = self.cleaned_data['token'].strip()
        if any(char.isspace() for char in token):
            raise forms.ValidationError('The token cannot contain whitespace.')
        return token

    def clean_host(self) -> str:
        host = self.cleaned_data['host'].strip().rstrip('/')
        if not host.lower().startswith(('http://', 'https://')):
            raise forms.ValidationError('The hostname must start with http:// or https://.')
        return host

    def save(self, source: ConfigSource) -> list[str]:
        """Write the cleaned values to ``source``; returns the keys that changed."""

        changed: list[str] = []
        for key in SETTING_KEYS:
            value = str(self.cleaned_data[key])
            if source.get(key) != value:
                source.set(key, value)
                changed.append(key)
        return changed


class AugmentForm(forms.Form):
    """A tracker page captured by the browser, to be augmented."""

    page_url = forms.URLField(label='Page URL', assume_scheme='https')
    html = forms.CharField(label='Page HTML', widget=forms.Textarea)
    user_id = forms.RegexField(
        regex=r'^\d+$',
        required=False,
        label='Tracker user id',
        help_text='Optional. Read from the page header when omitted.',
    )


class ForwardForm(forms.Form):
    """A torrent the companion should download on the user's behalf."""

    site = forms.CharField(max_length=255, label='Tracker site')
    user_id = forms.RegexField(regex=r'^\d+$', max_length=32, label='Tracker user id')
    resource_id = forms.RegexField(regex=r'^\d+$', max_length=32, label='Torrent id')
