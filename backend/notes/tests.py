"""
Test suite for the notes module
Tests: threading, pinning, soft delete, ownership, revisions, mentions,
reactions, attachments, follow-ups, templates and smart links
"""
import shutil
import tempfile
from datetime import datetime, timezone as dt_timezone

from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.notes import services
from backend.notes.models import Note, NoteTag, NoteMention, NoteRevision, NoteAttachment, NoteTemplate, NoteLink
from backend.todos.models import Todo


class NoteDerivedFieldTests(TestCase):
    """Test plain text, mentions, links, deltas and template rendering"""

    def test_plain_text_strips_html(self):
        """HTML is stripped, entities unescaped and whitespace collapsed"""
        content = "<p>Hello&nbsp;<b>world</b></p><p>Second   line</p>"
        self.assertEqual(services.derive_plain_text(content), "Hello world Second line")

    def test_plain_text_drops_scripts(self):
        """Script blocks do not end up in the plain text"""
        content = "<p>Safe</p><script>alert('x')</script>"
        self.assertEqual(services.derive_plain_text(content), "Safe")

    def test_extract_mentions(self):
        """@username tokens are found, e-mail addresses are not mentions"""
        text = "Ask @piet and @anna.b. Mail jan@example.com"
        self.assertEqual(services.extract_mention_usernames(text), ['piet', 'anna.b'])

    def test_extract_links(self):
        """Order numbers, tracking codes, SKUs, e-mails and URLs are detected"""
        text = ("Order #1234 shipped with 3SABCD12345678 and 1Z999AA10123456784. "
                "Replace SKU: MT-100, mail jan@example.com or see https://example.com/faq.")
        links = services.extract_links(text)
        found = {(link['link_type'], link['target_id']) for link in links}
        self.assertIn(('order', '1234'), found)
        self.assertIn(('tracking', '3SABCD12345678'), found)
        self.assertIn(('tracking', '1Z999AA10123456784'), found)
        self.assertIn(('sku', 'MT-100'), found)
        self.assertIn(('email', 'jan@example.com'), found)
        self.assertIn(('url', 'https://example.com/faq'), found)

    def test_extract_links_deduplicates(self):
        """The same reference twice yields one link"""
        links = services.extract_links("#1234 and again #1234")
        self.assertEqual(len(links), 1)

    def test_extract_links_long_url(self):
        """A long URL is kept whole while its display text is shortened"""
        url = 'https://example.com/track?code=' + 'a' * 300
        links = services.extract_links(f"see {url}")
        self.assertEqual(links[0]['target_id'], url)
        self.assertEqual(links[0]['url'], url)
        self.assertEqual(len(links[0]['display_text']), 255)
        self.assertTrue(links[0]['display_text'].endswith('...'))

    def test_compute_delta(self):
        """Delta holds difflib opcodes with the changed lines"""
        delta = services.compute_delta("line one\nline two", "line one\nline 2")
        self.assertEqual([entry['op'] for entry in delta], ['equal', 'replace'])
        self.assertEqual(delta[1]['old'], ['line two'])
        self.assertEqual(delta[1]['new'], ['line 2'])

    def test_render_template_keeps_unknown_placeholders(self):
        """Known placeholders are substituted, unknown ones stay"""
        rendered = services.render_template("Hi {{ name }}, order {{order}}", {'name': 'Piet'})
        self.assertEqual(rendered, "Hi Piet, order {{order}}")


class NoteCreateTests(TestCase):
    """Test creating notes and replies"""

    def setUp(self):
        self.user = TestDataFactory.create_user(username='author')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_note(self):
        """Test creating a root note"""
        response = self.client.post('/api/v1/notes/', {
            'entity_type': 'order',
            'entity_id': '42',
            'content': '<p>Customer called about <b>delivery</b></p>',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['thread_depth'], 0)
        self.assertEqual(response.data['visibility'], 'internal')
        self.assertEqual(response.data['plain_text'], 'Customer called about delivery')
        self.assertEqual(response.data['author']['username'], 'author')
        self.assertTrue(AuditLog.objects.filter(action='note_create', object_id=str(response.data['id'])).exists())

    def test_create_note_requires_authentication(self):
        """Test unauthenticated requests are rejected"""
        self.client.logout()
        response = self.client.post('/api/v1/notes/', {
            'entity_type': 'order', 'entity_id': '42', 'content': 'Hi'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_note_invalid_entity_type(self):
        """Test unknown entity types are rejected"""
        response = self.client.post('/api/v1/notes/', {
            'entity_type': 'invoice', 'entity_id': '1', 'content': 'Hi'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('entity_type', response.data)

    def test_create_note_empty_content(self):
        """Test notes without text are rejected"""
        response = self.client.post('/api/v1/notes/', {
            'entity_type': 'order', 'entity_id': '1', 'content': '<p>  </p>'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_note_with_long_url(self):
        """Test a note with a URL over 255 characters stores a valid link"""
        url = 'https://example.com/track?' + 'a' * 300
        response = self.client.post('/api/v1/notes/', {
            'entity_type': 'order', 'entity_id': '1', 'content': f'see {url}'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        link = NoteLink.objects.get(note_id=response.data['id'], link_type='url')
        self.assertEqual(link.target_id, url)
        link.full_clean()

    def test_client_cannot_create_system_note(self):
        """Test system visibility is reserved for the application"""
        response = self.client.post('/api/v1/notes/', {
            'entity_type': 'order', 'entity_id': '1', 'content': 'Hi', 'visibility': 'system'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('visibility', response.data)

    def test_reply_depth(self):
        """Test reply depth is parent depth + 1 up to the maximum"""
        root = TestDataFactory.create_note(self.user, entity_id='7')
        reply = TestDataFactory.create_note(self.user, entity_id='7', parent_note=root)
        nested = TestDataFactory.create_note(self.user, entity_id='7', parent_note=reply)
        self.assertEqual(reply.thread_depth, 1)
        self.assertEqual(nested.thread_depth, 2)

        response = self.client.post('/api/v1/notes/', {
            'entity_type': 'order', 'entity_id': '7', 'content': 'Too deep', 'parent_note': nested.id
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('parent_note', response.data)

    def test_reply_must_be_on_same_entity(self):
        """Test a reply cannot cross entities"""
        root = TestDataFactory.create_note(self.user, entity_type='order', entity_id='7')
        response = self.client.post('/api/v1/notes/', {
            'entity_type': 'case', 'entity_id': '7', 'content': 'Reply', 'parent_note': root.id
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_reply_to_deleted_note(self):
        """Test replying to a soft-deleted note is rejected"""
        root = TestDataFactory.create_note(self.user, entity_id='7')
        services.soft_delete_note(root, self.user, 'Wrong order')
        response = self.client.post('/api/v1/notes/', {
            'entity_type': 'order', 'entity_id': '7', 'content': 'Reply', 'parent_note': root.id
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_with_tags_and_mentions(self):
        """Test tags are assigned and mentions come from ids and @usernames"""
        tag = NoteTag.objects.create(name='urgent')
        colleague = TestDataFactory.create_user(username='piet')
        other = TestDataFactory.create_user(username='anna')
        response = self.client.post('/api/v1/notes/', {
            'entity_type': 'return',
            'entity_id': '3',
            'content': 'Can @piet check this?',
            'tag_ids': [tag.id],
            'mention_user_ids': [other.id],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual([t['name'] for t in response.data['tags']], ['urgent'])
        self.assertEqual(sorted(response.data['mentioned_user_ids']), sorted([colleague.id, other.id]))

    def test_create_with_unknown_tag(self):
        """Test unknown tag ids are rejected"""
        response = self.client.post('/api/v1/notes/', {
            'entity_type': 'order', 'entity_id': '1', 'content': 'Hi', 'tag_ids': [999]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_from_template(self):
        """Test a note rendered from a template"""
        template = NoteTemplate.objects.create(name='Called', content='Called {{name}} about the return')
        response = self.client.post('/api/v1/notes/', {
            'entity_type': 'return',
            'entity_id': '3',
            'template': template.id,
            'variables': {'name': 'Jan'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['content'], 'Called Jan about the return')
        self.assertEqual(response.data['source'], 'template')

    def test_system_note_helper(self):
        """Test application-written notes get system visibility"""
        note = services.create_system_note('return', 5, 'Status changed from Nieuw to Klaar', user=self.user)
        self.assertEqual(note.visibility, 'system')
        self.assertEqual(note.source, 'system')
        self.assertEqual(note.entity_id, '5')


class NoteThreadTests(TestCase):
    """Test the threaded list of an entity's notes"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_thread_order(self):
        """Test pinned roots first, then newest; replies oldest first"""
        first = TestDataFactory.create_note(self.user, entity_id='9', content='First')
        second = TestDataFactory.create_note(self.user, entity_id='9', content='Second')
        third = TestDataFactory.create_note(self.user, entity_id='9', content='Third')
        services.pin_note(first, self.user)
        reply_a = TestDataFactory.create_note(self.user, entity_id='9', content='Reply A', parent_note=second)
        reply_b = TestDataFactory.create_note(self.user, entity_id='9', content='Reply B', parent_note=second)
        TestDataFactory.create_note(self.user, entity_id='10', content='Other order')

        response = self.client.get('/api/v1/notes/order/9/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 5)
        root_ids = [n['id'] for n in response.data['results']]
        self.assertEqual(root_ids, [first.id, third.id, second.id])
        replies = response.data['results'][2]['replies']
        self.assertEqual([r['id'] for r in replies], [reply_a.id, reply_b.id])

    def test_deleted_notes_hidden(self):
        """Test deleted notes are hidden unless include_deleted is set"""
        kept = TestDataFactory.create_note(self.user, entity_id='9')
        removed = TestDataFactory.create_note(self.user, entity_id='9')
        services.soft_delete_note(removed, self.user, 'Duplicate')

        response = self.client.get('/api/v1/notes/order/9/')
        self.assertEqual([n['id'] for n in response.data['results']], [kept.id])

        response = self.client.get('/api/v1/notes/order/9/?include_deleted=true')
        self.assertEqual(len(response.data['results']), 2)

    def test_thread_filters(self):
        """Test visibility, author and tag filters"""
        other = TestDataFactory.create_user()
        tag = NoteTag.objects.create(name='billing')
        tagged = TestDataFactory.create_note(self.user, entity_id='9', tag_ids=[tag.id])
        visible = TestDataFactory.create_note(other, entity_id='9', visibility='customer_visible')

        response = self.client.get('/api/v1/notes/order/9/?visibility=customer_visible')
        self.assertEqual([n['id'] for n in response.data['results']], [visible.id])

        response = self.client.get(f'/api/v1/notes/order/9/?author={self.user.id}')
        self.assertEqual([n['id'] for n in response.data['results']], [tagged.id])

        response = self.client.get(f'/api/v1/notes/order/9/?tag={tag.id}')
        self.assertEqual([n['id'] for n in response.data['results']], [tagged.id])

    def test_unknown_entity_type(self):
        """Test thread of an unknown entity type"""
        response = self.client.get('/api/v1/notes/invoice/1/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search(self):
        """Test searching note text"""
        match = TestDataFactory.create_note(self.user, entity_id='1', content='Package lost by courier')
        TestDataFactory.create_note(self.user, entity_id='2', content='Refund issued')
        removed = TestDataFactory.create_note(self.user, entity_id='3', content='Courier again')
        services.soft_delete_note(removed, self.user, 'Wrong entity')

        response = self.client.get('/api/v1/notes/search/?q=courier')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([n['id'] for n in response.data['results']], [match.id])

    def test_search_requires_query(self):
        """Test search without q"""
        response = self.client.get('/api/v1/notes/search/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class NoteEditDeleteTests(TestCase):
    """Test editing, revisions and soft delete"""

    def setUp(self):
        self.author = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.author)
        self.note = TestDataFactory.create_note(self.author, content='line one\nline two')

    def test_edit_creates_revision(self):
        """Test a content edit records a revision and re-derives fields"""
        response = self.client.patch(f'/api/v1/notes/{self.note.id}/', {
            'content': 'line one\nline 2 see #5555'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['edited_at'])
        self.assertEqual(response.data['plain_text'], 'line one line 2 see #5555')

        revision = NoteRevision.objects.get(note=self.note)
        self.assertEqual(revision.previous_content, 'line one\nline two')
        self.assertEqual(revision.editor, self.author)
        self.assertEqual(revision.delta[1]['op'], 'replace')

        links = self.client.get(f'/api/v1/notes/{self.note.id}/links/')
        self.assertEqual(links.data[0]['target_id'], '5555')

    def test_edit_same_content_no_revision(self):
        """Test saving unchanged content does not create a revision"""
        response = self.client.patch(f'/api/v1/notes/{self.note.id}/', {
            'content': 'line one\nline two'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(NoteRevision.objects.filter(note=self.note).exists())

    def test_revisions_newest_first(self):
        """Test revision history order"""
        services.update_note(self.note, self.author, content='v2')
        services.update_note(self.note, self.author, content='v3')
        response = self.client.get(f'/api/v1/notes/{self.note.id}/revisions/')
        self.assertEqual([r['new_content'] for r in response.data], ['v3', 'v2'])

    def test_only_author_can_edit(self):
        """Test editing someone else's note is forbidden"""
        self.client.authenticate_user(self.other)
        response = self.client.patch(f'/api/v1/notes/{self.note.id}/', {'content': 'hijack'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_soft_delete(self):
        """Test soft delete keeps content and records who and why"""
        response = self.client.delete(f'/api/v1/notes/{self.note.id}/', {'delete_reason': 'Duplicate'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.note.refresh_from_db()
        self.assertIsNotNone(self.note.deleted_at)
        self.assertEqual(self.note.deleted_by, self.author)
        self.assertEqual(self.note.delete_reason, 'Duplicate')
        self.assertEqual(self.note.content, 'line one\nline two')

    def test_delete_requires_reason(self):
        """Test a blank reason is rejected"""
        response = self.client.delete(f'/api/v1/notes/{self.note.id}/', {'delete_reason': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.note.refresh_from_db()
        self.assertIsNone(self.note.deleted_at)

    def test_delete_twice_rejected(self):
        """Test deleting an already deleted note"""
        services.soft_delete_note(self.note, self.author, 'Duplicate')
        response = self.client.delete(f'/api/v1/notes/{self.note.id}/', {'delete_reason': 'Again'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_author_can_delete(self):
        """Test other users, admins included, cannot delete"""
        admin = TestDataFactory.create_user(role='ADMIN', is_staff=True)
        self.client.authenticate_user(admin)
        response = self.client.delete(f'/api/v1/notes/{self.note.id}/', {'delete_reason': 'Cleanup'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cannot_edit_deleted_note(self):
        """Test deleted notes are read-only"""
        services.soft_delete_note(self.note, self.author, 'Duplicate')
        response = self.client.patch(f'/api/v1/notes/{self.note.id}/', {'content': 'new'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_system_note_is_read_only(self):
        """Test an application-written note cannot be edited or deleted by its user"""
        note = services.create_system_note('return', 5, 'Status changed from Nieuw to Klaar', user=self.author)
        url = f'/api/v1/notes/{note.id}/'

        response = self.client.get(url)
        self.assertFalse(response.data['can_edit'])

        response = self.client.patch(url, {'content': 'nothing happened', 'visibility': 'customer_visible'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.delete(url, {'delete_reason': 'Wrong'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        note.refresh_from_db()
        self.assertEqual(note.visibility, 'system')
        self.assertEqual(note.content, 'Status changed from Nieuw to Klaar')
        self.assertIsNone(note.deleted_at)

    def test_delete_unpins(self):
        """Test soft delete unpins the note"""
        services.pin_note(self.note, self.author)
        services.soft_delete_note(self.note, self.author, 'Outdated')
        self.note.refresh_from_db()
        self.assertFalse(self.note.is_pinned)
        self.assertIsNone(self.note.pin_slot)


class NotePinTests(TestCase):
    """Test pinning rules"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.other)

    def test_pin_and_unpin(self):
        """Test any user can pin and unpin"""
        note = TestDataFactory.create_note(self.user)
        response = self.client.post(f'/api/v1/notes/{note.id}/pin/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_pinned'])
        self.assertEqual(response.data['pinned_by'], self.other.id)

        response = self.client.delete(f'/api/v1/notes/{note.id}/pin/')
        self.assertFalse(response.data['is_pinned'])

    def test_pin_is_idempotent(self):
        """Test pinning twice keeps one audit entry"""
        note = TestDataFactory.create_note(self.user)
        self.client.post(f'/api/v1/notes/{note.id}/pin/')
        response = self.client.post(f'/api/v1/notes/{note.id}/pin/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(AuditLog.objects.filter(action='note_pin', object_id=str(note.id)).count(), 1)

    def test_pin_limit(self):
        """Test at most three pinned notes per entity"""
        notes = [TestDataFactory.create_note(self.user, entity_id='11') for _ in range(4)]
        for note in notes[:3]:
            self.assertEqual(self.client.post(f'/api/v1/notes/{note.id}/pin/').status_code, status.HTTP_200_OK)
        response = self.client.post(f'/api/v1/notes/{notes[3].id}/pin/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Note.objects.filter(entity_id='11', is_pinned=True).count(), 3)

        other_entity = TestDataFactory.create_note(self.user, entity_id='12')
        response = self.client.post(f'/api/v1/notes/{other_entity.id}/pin/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_pin_slots_are_reused(self):
        """Test an unpinned note frees its slot for the next pin"""
        notes = [TestDataFactory.create_note(self.user, entity_id='21') for _ in range(4)]
        for note in notes[:3]:
            services.pin_note(note, self.other)
        self.assertEqual(
            sorted(Note.objects.filter(entity_id='21').exclude(pin_slot=None).values_list('pin_slot', flat=True)),
            [1, 2, 3]
        )

        services.unpin_note(notes[1], self.other)
        notes[1].refresh_from_db()
        self.assertIsNone(notes[1].pin_slot)

        services.pin_note(notes[3], self.other)
        notes[3].refresh_from_db()
        self.assertEqual(notes[3].pin_slot, 2)

    def test_pin_slot_unique_per_entity(self):
        """Test two notes on one entity cannot hold the same pin slot"""
        first = TestDataFactory.create_note(self.user, entity_id='31')
        second = TestDataFactory.create_note(self.user, entity_id='31')
        elsewhere = TestDataFactory.create_note(self.user, entity_id='32')
        services.pin_note(first, self.other)

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Note.objects.filter(pk=second.pk).update(is_pinned=True, pin_slot=1)

        Note.objects.filter(pk=elsewhere.pk).update(is_pinned=True, pin_slot=1)

    def test_cannot_pin_reply(self):
        """Test only top-level notes can be pinned"""
        root = TestDataFactory.create_note(self.user)
        reply = TestDataFactory.create_note(self.user, parent_note=root)
        response = self.client.post(f'/api/v1/notes/{reply.id}/pin/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_pin_deleted(self):
        """Test deleted notes cannot be pinned"""
        note = TestDataFactory.create_note(self.user)
        services.soft_delete_note(note, self.user, 'Old')
        response = self.client.post(f'/api/v1/notes/{note.id}/pin/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class NoteTagMentionReactionTests(TestCase):
    """Test tags, mentions and reactions"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.colleague = TestDataFactory.create_user(username='colleague')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.note = TestDataFactory.create_note(self.user)

    def test_tag_crud_and_assignment(self):
        """Test creating a tag, assigning and removing it"""
        response = self.client.post('/api/v1/note-tags/', {'name': 'warranty', 'color': '#ff0000'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        tag_id = response.data['id']

        response = self.client.post(f'/api/v1/notes/{self.note.id}/tags/{tag_id}/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['tags'][0]['name'], 'warranty')

        response = self.client.post(f'/api/v1/notes/{self.note.id}/tags/{tag_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.delete(f'/api/v1/notes/{self.note.id}/tags/{tag_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.delete(f'/api/v1/notes/{self.note.id}/tags/{tag_id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_duplicate_tag_name(self):
        """Test tag names are unique"""
        NoteTag.objects.create(name='warranty')
        response = self.client.post('/api/v1/note-tags/', {'name': 'warranty'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mention_and_read(self):
        """Test mentioning a user and marking it read"""
        response = self.client.post(f'/api/v1/notes/{self.note.id}/mentions/', {'user_id': self.colleague.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        mention_id = response.data['id']

        response = self.client.patch(f'/api/v1/note-mentions/{mention_id}/read/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.colleague)
        response = self.client.get('/api/v1/note-mentions/mine/')
        self.assertEqual([m['id'] for m in response.data], [mention_id])

        response = self.client.patch(f'/api/v1/note-mentions/{mention_id}/read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['notified'])

        response = self.client.get('/api/v1/note-mentions/mine/')
        self.assertEqual(response.data, [])

    def test_mention_invalid_user(self):
        """Test a malformed, unknown or missing user id is rejected"""
        url = f'/api/v1/notes/{self.note.id}/mentions/'
        for payload in ({'user_id': 'abc'}, {'user_id': 999999}, {}):
            response = self.client.post(url, payload, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertIn('user_id', response.data)
        self.assertFalse(NoteMention.objects.filter(note=self.note).exists())

    def test_mention_added_on_edit(self):
        """Test an edit adding @username creates a mention"""
        services.update_note(self.note, self.user, content='Please look @colleague')
        self.assertTrue(NoteMention.objects.filter(note=self.note, user=self.colleague).exists())

    def test_reactions(self):
        """Test adding, summarising and removing reactions"""
        response = self.client.post(f'/api/v1/notes/{self.note.id}/reactions/', {'emoji': '👍'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.post(f'/api/v1/notes/{self.note.id}/reactions/', {'emoji': '👍'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.authenticate_user(self.colleague)
        self.client.post(f'/api/v1/notes/{self.note.id}/reactions/', {'emoji': '👍'}, format='json')

        response = self.client.get(f'/api/v1/notes/{self.note.id}/reactions/')
        self.assertEqual(len(response.data['reactions']), 2)
        self.assertEqual(response.data['summary'][0]['count'], 2)

        response = self.client.delete(f'/api/v1/notes/{self.note.id}/reactions/', {'emoji': '👍'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.get(f'/api/v1/notes/{self.note.id}/reactions/')
        self.assertEqual(response.data['summary'][0]['count'], 1)

    def test_cannot_react_to_deleted_note(self):
        """Test reactions on deleted notes are rejected"""
        services.soft_delete_note(self.note, self.user, 'Old')
        response = self.client.post(f'/api/v1/notes/{self.note.id}/reactions/', {'emoji': '👍'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class NoteAttachmentTests(TestCase):
    """Test note attachments"""

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.override = override_settings(MEDIA_ROOT=self.media_root)
        self.override.enable()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.note = TestDataFactory.create_note(self.user)

    def tearDown(self):
        self.override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def test_upload_and_list(self):
        """Test uploading several files"""
        files = [
            SimpleUploadedFile('label.pdf', b'%PDF-1.4 test', content_type='application/pdf'),
            SimpleUploadedFile('notes.txt', b'hello', content_type='text/plain'),
        ]
        response = self.client.post(f'/api/v1/notes/{self.note.id}/attachments/', {'files': files}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['uploaded']), 2)
        self.assertEqual(response.data['failed'], [])

        response = self.client.get(f'/api/v1/notes/{self.note.id}/attachments/')
        self.assertEqual({a['file_name'] for a in response.data}, {'label.pdf', 'notes.txt'})

    @override_settings(NOTES_MAX_ATTACHMENTS_PER_UPLOAD=1)
    def test_too_many_files(self):
        """Test the per-upload file limit"""
        files = [
            SimpleUploadedFile('a.txt', b'a', content_type='text/plain'),
            SimpleUploadedFile('b.txt', b'b', content_type='text/plain'),
        ]
        response = self.client.post(f'/api/v1/notes/{self.note.id}/attachments/', {'files': files}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_no_files(self):
        """Test an upload without files"""
        response = self.client.post(f'/api/v1/notes/{self.note.id}/attachments/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_permissions(self):
        """Test only the uploader or note author may remove an attachment"""
        uploader = TestDataFactory.create_user()
        attachment = NoteAttachment.objects.create(
            note=self.note,
            file=SimpleUploadedFile('a.txt', b'a', content_type='text/plain'),
            file_name='a.txt',
            size_bytes=1,
            uploaded_by=uploader
        )
        stranger = TestDataFactory.create_user()
        self.client.authenticate_user(stranger)
        response = self.client.delete(f'/api/v1/note-attachments/{attachment.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.user)
        response = self.client.delete(f'/api/v1/note-attachments/{attachment.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(NoteAttachment.objects.filter(pk=attachment.id).exists())


class NoteFollowupTests(TestCase):
    """Test follow-ups and their todos"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.assignee = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_followup(self):
        """Test a follow-up creates a todo with the default title"""
        order = TestDataFactory.create_order()
        note = TestDataFactory.create_note(self.user, entity_id=str(order.id), content='Customer called about delivery')
        response = self.client.post(f'/api/v1/notes/{note.id}/followups/', {
            'assignee': self.assignee.id,
            'due_at': '2030-01-15T10:00:00Z',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['todo']['title'], 'Follow-up: Customer called about delivery...')
        self.assertEqual(response.data['todo']['assigned_user'], self.assignee.id)
        self.assertEqual(response.data['todo']['order'], order.id)
        self.assertEqual(response.data['followup']['status'], 'pending')

    def test_complete_followup_completes_todo(self):
        """Test completing a follow-up marks its todo done"""
        note = TestDataFactory.create_note(self.user)
        followup, todo = services.create_followup(note, self.user)
        response = self.client.patch(f'/api/v1/note-followups/{followup.id}/', {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['completed_at'])
        todo.refresh_from_db()
        self.assertEqual(todo.status, 'done')
        self.assertIsNotNone(todo.completed_at)

    def test_reopen_followup_reopens_todo(self):
        """Test moving a completed follow-up back reopens its todo"""
        note = TestDataFactory.create_note(self.user)
        followup, todo = services.create_followup(note, self.user)
        url = f'/api/v1/note-followups/{followup.id}/'
        self.client.patch(url, {'status': 'completed'}, format='json')

        response = self.client.patch(url, {'status': 'in_progress'}, format='json')
        self.assertIsNone(response.data['completed_at'])
        todo.refresh_from_db()
        self.assertEqual(todo.status, 'in_progress')
        self.assertIsNone(todo.completed_at)

        self.client.patch(url, {'status': 'pending'}, format='json')
        todo.refresh_from_db()
        self.assertEqual(todo.status, 'todo')

    def test_due_date_and_assignee_copied_to_todo(self):
        """Test editing a follow-up updates its todo's due date and assignee"""
        note = TestDataFactory.create_note(self.user)
        followup, todo = services.create_followup(note, self.user)
        response = self.client.patch(f'/api/v1/note-followups/{followup.id}/', {
            'assignee': self.assignee.id,
            'due_at': '2030-02-01T09:00:00Z',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        todo.refresh_from_db()
        self.assertEqual(todo.assigned_user, self.assignee)
        self.assertEqual(todo.due_date, datetime(2030, 2, 1, 9, 0, tzinfo=dt_timezone.utc))
        self.assertEqual(todo.status, 'todo')

    def test_followup_list(self):
        """Test listing follow-ups of a note"""
        note = TestDataFactory.create_note(self.user)
        services.create_followup(note, self.user, title='Call back')
        response = self.client.get(f'/api/v1/notes/{note.id}/followups/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['todo_title'], 'Call back')
        self.assertEqual(Todo.objects.count(), 1)


class NoteTemplateTests(TestCase):
    """Test note templates"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_template_crud(self):
        """Test creating, updating and deleting a template"""
        response = self.client.post('/api/v1/note-templates/', {
            'name': 'Return received',
            'content': 'Return {{return_number}} received',
            'scope': 'entity',
            'entity_type': 'return',
            'variables': ['return_number'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        template_id = response.data['id']

        response = self.client.patch(f'/api/v1/note-templates/{template_id}/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])

        response = self.client.delete(f'/api/v1/note-templates/{template_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_entity_scope_requires_entity_type(self):
        """Test entity-scoped templates need an entity type"""
        response = self.client.post('/api/v1/note-templates/', {
            'name': 'Bad', 'content': 'x', 'scope': 'entity'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_template_filters(self):
        """Test filtering by entity type and active flag"""
        NoteTemplate.objects.create(name='Global', content='g')
        NoteTemplate.objects.create(name='Return', content='r', scope='entity', entity_type='return')
        NoteTemplate.objects.create(name='Order', content='o', scope='entity', entity_type='order')
        NoteTemplate.objects.create(name='Old', content='x', is_active=False, scope='entity', entity_type='return')

        response = self.client.get('/api/v1/note-templates/?entity_type=return&active=true')
        self.assertEqual([t['name'] for t in response.data], ['Global', 'Return'])

    def test_render(self):
        """Test rendering a template with variables"""
        template = NoteTemplate.objects.create(name='Greeting', content='Dear {{name}}, re {{order}}')
        response = self.client.post(f'/api/v1/note-templates/{template.id}/render/', {
            'variables': {'name': 'Jan'}
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['content'], 'Dear Jan, re {{order}}')
        self.assertEqual(response.data['missing_variables'], ['order'])
