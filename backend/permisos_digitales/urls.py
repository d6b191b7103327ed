from django.urls import include, path

urlpatterns = [
    path('api/admin/', include('administration.urls')),
    path('api/', include('permisos.urls')),
]

handler404 = 'permisos.views_errors.not_found'
handler500 = 'permisos.views_errors.server_error'
