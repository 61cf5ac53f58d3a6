from django.contrib import admin

from .models import CompanionSetting, Notice


@admin.register(CompanionSetting)
class CompanionSettingAdmin(admin.ModelAdmin):
    list_display = ('site', 'user_id', 'key', 'updated_at')
    list_filter = ('site',)
    search_fields = ('site', 'user_id', 'key')


@admin.register(Notice)
class NoticeAdmin(admin.ModelAdmin):
    list_display = ('title', 'site', 'user_id', 'seen', 'created_at')
    list_filter = ('seen', 'site')
