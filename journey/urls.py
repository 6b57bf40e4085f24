"""
Love Journey - API URL Configuration
"""

from django.urls import path
from . import views

urlpatterns = [
    # Auth
    path('register', views.register_view, name='register'),
    path('login', views.login_view, name='login'),
    path('logout', views.logout_view, name='logout'),
    path('csrf', views.csrf_view, name='csrf'),
    path('user', views.user_view, name='user'),
    path('user/password', views.password_view, name='change_password'),

    # Pairing
    path('relationship', views.relationship_view, name='relationship'),
    path('relationship/link', views.link_partner_view, name='link_partner'),

    # Daily questions
    path('questions', views.create_question_view, name='create_question'),
    path('questions/<int:question_id>/answer', views.answer_question_view, name='answer_question'),
    path('questions/<str:day>', views.questions_for_date_view, name='questions_for_date'),

    # Memories
    path('memories', views.memories_view, name='memories'),
    path('memories/<int:memory_id>', views.delete_memory_view, name='delete_memory'),

    path('health', views.health_view, name='health'),
]
