"""
Love Journey - Root URL Configuration
"""

from django.urls import include, path

urlpatterns = [
    path('api/', include('journey.urls')),
]
