from django.urls import path
from .views import deferred_events_api, enqueue_event_api, track_event_api, update_config_api

urlpatterns = [
    path('track/', track_event_api, name='track_event'),
    path('enqueue/', enqueue_event_api, name='enqueue_event'),
    path('deferred/', deferred_events_api, name='deferred_events'),
    path('config/', update_config_api, name='update_config'),
]
