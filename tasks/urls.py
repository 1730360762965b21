from django.urls import path

from . import views

app_name = "tasks"

urlpatterns = [
    path("", views.dashboard, name="dashboard"),
    path("add/", views.task_add, name="task_add"),
    path("<int:pk>/edit/", views.task_edit, name="task_edit"),
    path("<int:pk>/toggle-complete/", views.task_toggle_complete, name="toggle_complete"),
    path("<int:pk>/delete/", views.task_delete, name="task_delete"),
    path("overview/", views.overview, name="overview"),
    path("explorer/", views.explorer, name="explorer"),
]
