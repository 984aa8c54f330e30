"""
File API URLs.
"""
from django.urls import path
from apps.files import views

app_name = 'files'

urlpatterns = [
    path('', views.FileListView.as_view(), name='file-list'),
    path('bulk/', views.FileBulkDeleteView.as_view(), name='file-bulk-delete'),
    path('folders/', views.FileFolderListView.as_view(), name='folder-list'),
    path('folders/<int:folder_id>/', views.FileFolderDetailView.as_view(), name='folder-detail'),
    path('<int:file_id>/', views.FileDetailView.as_view(), name='file-detail'),
    path('<int:file_id>/download/', views.FileDownloadView.as_view(), name='file-download'),
    path('<int:file_id>/preview/', views.FilePreviewView.as_view(), name='file-preview'),
    path('<int:file_id>/text/', views.FileTextView.as_view(), name='file-text'),
]
