from django.urls import path
from . import views

urlpatterns = [
    path('upload', views.upload_image, name='upload-image'),
    path('delete-image', views.delete_image, name='delete-image'),
]
