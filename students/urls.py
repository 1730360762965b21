from django.urls import path

from . import views

app_name = "students"

urlpatterns = [
    path("", views.student_list, name="student_list"),
    path("<int:pk>/", views.student_detail, name="student_detail"),
    path("create/", views.student_create, name="student_create"),
    path("next-id/", views.next_student_id, name="next_student_id"),
    path("export/<str:status>/", views.student_export, name="student_export"),
    path("profile/", views.profile, name="profile"),
    path("password/", views.password_change, name="password_change"),
    path("assessment/", views.assessment, name="assessment"),
]
