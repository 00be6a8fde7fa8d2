from django.urls import include, path

urlpatterns = [
    path("", include("apps.payments.urls")),
    path("api/", include("apps.monitoring.urls")),
]
