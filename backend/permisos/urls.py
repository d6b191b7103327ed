from django.urls import path
from . import views_authentication
from . import views_profile
from . import views_applications
from . import views_health
from . import views_cron

urlpatterns = [
    path('health', views_health.health, name='health'),
    # Session authentication
    path('auth/csrf-token', views_authentication.csrf_token, name='csrf_token'),
    path('auth/register', views_authentication.register, name='register'),
    path('auth/login', views_authentication.login_view, name='login'),
    path('auth/logout', views_authentication.logout_view, name='logout'),
    path('auth/status', views_authentication.auth_status, name='auth_status'),
    path('auth/change-password', views_authentication.change_password, name='change_password'),
    path('auth/forgot-password', views_authentication.forgot_password, name='forgot_password'),
    path('auth/reset-password', views_authentication.reset_password, name='reset_password'),
    path('user/profile', views_profile.user_profile, name='user_profile'),
    # Client applications
    path('applications', views_applications.applications, name='applications'),
    path('applications/<int:application_id>', views_applications.application_detail, name='application_detail'),
    path('applications/<int:application_id>/status', views_applications.application_status, name='application_status'),
    path('applications/<int:application_id>/payment-proof', views_applications.upload_payment_proof, name='upload_payment_proof'),
    path('applications/<int:application_id>/cancel', views_applications.cancel_application, name='cancel_application'),
    path('applications/<int:application_id>/renewal-eligibility', views_applications.renewal_eligibility, name='renewal_eligibility'),
    path('applications/<int:application_id>/renew', views_applications.renew_application, name='renew_application'),
    path('applications/<int:application_id>/download/<str:doc_type>', views_applications.download_document, name='download_document'),
    # Scheduled maintenance
    path('cron/expire-applications', views_cron.expire_applications_view, name='cron_expire_applications'),
]
