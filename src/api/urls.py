"""Main API URL router for /api/v1/."""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from api.v1 import proposal_views
from api.v1 import views as v1_views

router = DefaultRouter()
router.register(r'estimates', v1_views.EstimateViewSet, basename='estimate')
router.register(r'financing-plans', v1_views.FinancingPlanViewSet, basename='financing-plan')
router.register(r'notifications', v1_views.NotificationViewSet, basename='notification')


app_name = 'api'
urlpatterns = [
    # Staff quote builder (declared before the router so it is not read as an estimate id)
    path('estimates/totals/', v1_views.QuoteTotalsAPIView.as_view(), name='estimate-totals'),

    path('', include(router.urls)),

    # Public proposal endpoints
    path('proposals/<str:token>/sign/', proposal_views.ProposalSignAPIView.as_view(), name='proposal-sign'),
    path('proposals/<str:token>/engage/', proposal_views.ProposalEngageAPIView.as_view(), name='proposal-engage'),
    path('proposals/<str:token>/quote/', proposal_views.ProposalQuoteAPIView.as_view(), name='proposal-quote'),
    path('documents/<str:token>/', proposal_views.SignedDocumentAPIView.as_view(), name='signed-document'),
]
