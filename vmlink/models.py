"""Database models for the vmlink app.

Companion settings are stored as namespaced key/value rows, one namespace
per tracker site and tracker user, so a single installation can serve
several trackers and accounts. Notices hold the messages the engine wants
to surface to the user (e.g. missing configuration).
"""

from __future__ import annotations

from django.db import models


class CompanionSetting(models.Model):
    """A single setting value for one tracker site and user."""

    site = models.CharField(max_length=255, db_index=True)
    user_id = models.CharField(max_length=32)
    key = models.CharField(max_length=64)
    value = models.CharField(max_length=512, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('site', 'user_id', 'key')

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return f"{self.site}_{self.user_id}_{self.key}"


class Notice(models.Model):
    """A message raised by the engine for a tracker site and user."""

    site = models.CharField(max_length=255, db_index=True)
    user_id = models.CharField(max_length=32)
    title = models.CharField(max_length=200)
    body = models.TextField()
    seen = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return f"{self.site} · {self.user_id} · {self.title}"
