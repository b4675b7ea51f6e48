from django.http import HttpResponse
from django.urls import include, path


def index(request):
    return HttpResponse("Welcome to the Pizza Farmhouse Backend!")


urlpatterns = [
    path('', index, name='index'),
    path('api/', include('orders.urls')),
    path('api/', include('accounts.urls')),
    path('api/', include('menu.urls')),
]
