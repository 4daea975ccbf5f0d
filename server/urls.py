"""Main URL mapping configuration file.

Only the admin is exposed over HTTP. Business operations live in
``server.apps.*.logic`` and are called by the outer API layer.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path('admin/', admin.site.urls),
]
