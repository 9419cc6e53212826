from django.contrib import admin
from django.urls import path

from core import views

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', views.home, name='home'),
    path('setup', views.setup, name='setup'),
    path('api/setup-check', views.setup_check, name='setup-check'),
    path('api/admin/check-index', views.check_index, name='check-index'),
]
