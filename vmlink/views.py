"""Django views for the vmlink app.

These views let a signed-in user manage the companion settings of each
tracker account, run the forwarding engine against a page captured from
the tracker, hand single torrents to the companion, and read the notices
the engine raised.
"""

from __future__ import annotations

from urllib.parse import urlparse

from django.conf import settings
from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.db import transaction
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import redirect, render
from django.views.decorators.http import require_GET, require_POST

from .engine.dom import LiveDocument
from .engine.source import detect_user_id
from .forms import AugmentForm, CompanionSettingsForm, ForwardForm
from .models import Notice
from .services import DatabaseConfigSource, augment_page, forward_download


@login_required
def companion_settings(request: HttpRequest, site: str, user_id: str) -> HttpResponse:
    """Display and autosave the companion settings for one tracker account."""

    source = DatabaseConfigSource(site, user_id)
    if request.method == 'POST':
        form = CompanionSettingsForm(request.POST)
        if form.is_valid():
            with transaction.atomic():
                changed = form.save(source)
            if changed:
                messages.success(request, f"Saved {', '.join(changed)} for {site}.")
            else:
                messages.info(request, 'Nothing changed.')
            return redirect('vmlink:settings', site=site, user_id=user_id)
    else:
        form = CompanionSettingsForm(initial=source.values())

    return render(
        request,
        'vmlink/settings_form.html',
        {
            'form': form,
            'site': site,
            'user_id': user_id,
            'configured': source.read_config() is not None,
        },
    )


@login_required
@require_POST
def augment(request: HttpRequest) -> JsonResponse:
    """Run the engine on a posted page and return the augmented markup."""

    form = AugmentForm(request.POST)
    if not form.is_valid():
        return JsonResponse({'errors': form.errors}, status=400)

    page_url: str = form.cleaned_data['page_url']
    document = LiveDocument(form.cleaned_data['html'], page_url)
    site = urlparse(page_url).hostname or ''
    user_id = form.cleaned_data['user_id'] or detect_user_id(document)
    if not user_id:
        return JsonResponse(
            {'errors': {'user_id': ['The tracker user id could not be found in the page.']}},
            status=400,
        )

    outcome = augment_page(
        document,
        DatabaseConfigSource(site, user_id),
        timeout=settings.VMLINK_HANDSHAKE_TIMEOUT,
    )
    return JsonResponse(
        {
            'site': site,
            'user_id': user_id,
            'configured': outcome.configured,
            'connected': outcome.connected,
            'augmented': outcome.augmented,
            'status': outcome.status,
            'html': outcome.html,
        }
    )


@login_required
@require_POST
def forward(request: HttpRequest) -> JsonResponse:
    """Ask the companion to download a torrent and relay its answer."""

    form = ForwardForm(request.POST)
    if not form.is_valid():
        return JsonResponse({'errors': form.errors}, status=400)

    outcome = forward_download(
        DatabaseConfigSource(form.cleaned_data['site'], form.cleaned_data['user_id']),
        form.cleaned_data['resource_id'],
        timeout=settings.VMLINK_HANDSHAKE_TIMEOUT,
    )
    return JsonResponse(
        {
            'resource_id': form.cleaned_data['resource_id'],
            'configured': outcome.configured,
            'connected': outcome.connected,
            'sent': outcome.sent,
            'reply': outcome.reply,
            'error': outcome.error,
        },
        status=200 if outcome.sent else 503,
    )


@login_required
@require_GET
def notices(request: HttpRequest, site: str, user_id: str) -> JsonResponse:
    """Return unseen notices for the account and mark them as seen."""

    pending = list(Notice.objects.filter(site=site, user_id=user_id, seen=False))
    Notice.objects.filter(pk__in=[notice.pk for notice in pending]).update(seen=True)
    return JsonResponse(
        {
            'notices': [
                {
                    'title': notice.title,
                    'body': notice.body,
                    'created_at': notice.created_at.isoformat(),
                }
                for notice in pending
            ]
        }
    )
