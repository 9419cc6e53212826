from django.db import models

SITE_STATUS_KEY = 'siteStatus'


class Setting(models.Model):
    key = models.CharField(max_length=100, unique=True)
    value = models.JSONField(default=dict, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Setting'
        verbose_name_plural = 'Settings'

    def __str__(self):
        return self.key


class MediaItem(models.Model):
    TYPE_IMAGE = 'image'
    TYPE_VIDEO = 'video'
    TYPE_DOCUMENT = 'document'
    TYPE_CHOICES = [
        (TYPE_IMAGE, 'Image'),
        (TYPE_VIDEO, 'Video'),
        (TYPE_DOCUMENT, 'Document'),
    ]

    ACTIVE_TYPE_INDEX = 'media_active_type_idx'

    name = models.CharField(max_length=255)
    url = models.URLField(max_length=500)
    type = models.CharField(max_length=16, choices=TYPE_CHOICES, default=TYPE_IMAGE)
    uploaded_at = models.DateTimeField(auto_now_add=True)
    deleted_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ('-uploaded_at',)
        indexes = [
            models.Index(fields=['deleted_at', 'type', '-uploaded_at'], name='media_active_type_idx'),
        ]

    def __str__(self):
        return self.name
