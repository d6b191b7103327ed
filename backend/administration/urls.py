from . import views
from django.urls import path

app_name = 'administration'

urlpatterns = [
    path('dashboard-stats', views.dashboard_stats, name='dashboard_stats'),
    path('pending-verifications', views.pending_verifications, name='pending_verifications'),

    # Applications
    path('applications', views.applications_list, name='applications_list'),
    path('applications/<int:application_id>', views.application_detail, name='application_detail'),
    path('applications/<int:application_id>/payment-proof', views.application_payment_proof, name='application_payment_proof'),
    path('applications/<int:application_id>/verify-payment', views.verify_payment, name='verify_payment'),
    path('applications/<int:application_id>/reject-payment', views.reject_payment, name='reject_payment'),
    path('applications/<int:application_id>/issue-permit', views.issue_permit, name='issue_permit'),
    path('applications/<int:application_id>/status', views.update_status, name='update_status'),
    path('applications/<int:application_id>/verification-history', views.verification_history, name='verification_history'),

    # Users
    path('users', views.users_list, name='users_list'),
    path('users/<int:user_id>', views.user_detail, name='user_detail'),
    path('users/<int:user_id>/enable', views.user_enable, name='user_enable'),
    path('users/<int:user_id>/disable', views.user_disable, name='user_disable'),
]
