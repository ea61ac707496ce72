from django.urls import path, include
from rest_framework.routers import DefaultRouter
from tenants.views import TenantViewSet

from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

router = DefaultRouter()
router.register(r'tenants', TenantViewSet)

urlpatterns = [
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('attendance/', include('site_attendance.urls')),
    path('geofence-sync/', include('geofence_sync.urls')),
    path('', include(router.urls)),
]
