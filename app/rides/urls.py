"""
URL configuration for the rides API.

Routes:
    /bookings/{id}/confirm-arrival/ - Driver arrival confirmation (POST)
"""

from rest_framework.routers import DefaultRouter

from rides.views import RideBookingViewSet

router = DefaultRouter()
router.register(r"bookings", RideBookingViewSet, basename="booking")

app_name = "rides"
urlpatterns = router.urls
