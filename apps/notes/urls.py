"""
Notes API URLs.
"""
from django.urls import path
from apps.notes import views

app_name = 'notes'

urlpatterns = [
    path('', views.NoteListView.as_view(), name='note-list'),
    path('bulk/', views.NoteBulkDeleteView.as_view(), name='note-bulk-delete'),
    path('folders/', views.FolderListView.as_view(), name='folder-list'),
    path('folders/<int:folder_id>/', views.FolderDetailView.as_view(), name='folder-detail'),
    path('<int:note_id>/', views.NoteDetailView.as_view(), name='note-detail'),
]
