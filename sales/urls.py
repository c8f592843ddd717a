from rest_framework.routers import DefaultRouter

from sales.views import PaymentViewSet, PurchaseViewSet, SaleViewSet

router = DefaultRouter()
router.register(r"sales", SaleViewSet, basename="sale")
router.register(r"purchases", PurchaseViewSet, basename="purchase")
router.register(r"payments", PaymentViewSet, basename="payment")

urlpatterns = router.urls
