"""
URL configuration for smart_academics project.

The Django admin is the back-office surface: catalogs, users, coordinator
grants, tasks and notifications.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path('admin/', admin.site.urls),
]

# Admin site customization
admin.site.site_header = 'SmartAcademics Administration'
admin.site.site_title = 'SmartAcademics Admin'
admin.site.index_title = 'Welcome to SmartAcademics Admin'
