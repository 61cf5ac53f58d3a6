"""URL configuration for the vmlink app.

This module defines the URL patterns for the app's views. It also
specifies the ``app_name`` to allow namespacing from the project URL
configuration.
"""

from django.urls import path

from . import views

app_name = 'vmlink'

urlpatterns = [
    path('settings/<str:site>/<str:user_id>/', views.companion_settings, name='settings'),
    path('notices/<str:site>/<str:user_id>/', views.notices, name='notices'),
    path('augment/', views.augment, name='augment'),
    path('forward/', views.forward, name='forward'),
]
