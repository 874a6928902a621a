from django.urls import path
from . import views

urlpatterns = [
    path('notes/', views.note_create, name='note-create'),
    path('notes/search/', views.note_search, name='note-search'),
    path('notes/<int:pk>/', views.note_detail, name='note-detail'),
    path('notes/<int:pk>/pin/', views.note_pin, name='note-pin'),
    path('notes/<int:pk>/tags/<int:tag_id>/', views.note_tag_assign, name='note-tag-assign'),
    path('notes/<int:pk>/mentions/', views.note_mentions, name='note-mentions'),
    path('notes/<int:pk>/reactions/', views.note_reactions, name='note-reactions'),
    path('notes/<int:pk>/attachments/', views.note_attachments, name='note-attachments'),
    path('notes/<int:pk>/followups/', views.note_followups, name='note-followups'),
    path('notes/<int:pk>/revisions/', views.note_revisions, name='note-revisions'),
    path('notes/<int:pk>/links/', views.note_links, name='note-links'),
    # After the numeric routes so notes/<pk>/pin/ is not read as an entity thread
    path('notes/<str:entity_type>/<str:entity_id>/', views.note_thread, name='note-thread'),
    path('note-tags/', views.note_tag_list_create, name='note-tag-list-create'),
    path('note-mentions/mine/', views.my_mentions, name='note-mention-mine'),
    path('note-mentions/<int:pk>/read/', views.note_mention_read, name='note-mention-read'),
    path('note-attachments/<int:pk>/', views.note_attachment_delete, name='note-attachment-delete'),
    path('note-followups/<int:pk>/', views.note_followup_detail, name='note-followup-detail'),
    path('note-templates/', views.note_template_list_create, name='note-template-list-create'),
    path('note-templates/<int:pk>/', views.note_template_detail, name='note-template-detail'),
    path('note-templates/<int:pk>/render/', views.note_template_render, name='note-template-render'),
]
