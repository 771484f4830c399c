from datetime import datetime
from types import SimpleNamespace
from unittest.mock import patch

from elevates.config import config
from elevates.content.services import anthropic_service, image_service
from elevates.content.services.prompts import load_prompts
from elevates.exceptions import ConfigurationError, UpstreamServiceError
from tests.base import APITestCase, BaseTestCase


def text_block(text):
    return SimpleNamespace(type='text', text=text)


def tool_block(name, data):
    return SimpleNamespace(type='tool_use', name=name, input=data)


def message(*blocks, stop_reason='end_turn'):
    return SimpleNamespace(content=list(blocks), stop_reason=stop_reason)


def image_response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def image_part(data=b'png', mime_type='image/png', text=None):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=text)


class TestPrompts(BaseTestCase):

    def test_tools_are_defined(self):
        names = [tool['name'] for tool in load_prompts()['tools']]
        self.assertEqual(names, ['add_calendar_event', 'add_task'])

    @patch('elevates.content.services.anthropic_service.now_in_timezone')
    def test_system_prompt_includes_date(self, now):
        now.return_value = datetime(2026, 3, 2, 9, 30)
        prompt = anthropic_service.build_system_prompt('Be brief.')
        self.assertTrue(prompt.startswith('Be brief.'))
        self.assertIn('Today is Monday, 2026-03-02', prompt)

        self.assertTrue(anthropic_service.build_system_prompt().startswith('You are a helpful assistant.'))


@patch('elevates.content.services.anthropic_service.anthropic.Anthropic')
class TestAnthropicService(BaseTestCase):

    def test_missing_key(self, client_cls):
        patch.object(config, 'ANTHROPIC_API_KEY', '').start()
        with self.assertRaises(ConfigurationError):
            anthropic_service.chat('hello')
        client_cls.assert_not_called()

    def test_chat_returns_text(self, client_cls):
        create = client_cls.return_value.messages.create
        create.return_value = message(text_block('Hi there'))

        result = anthropic_service.chat('hello', history=[
            {'role': 'user', 'content': 'earlier'},
            {'role': 'assistant', 'content': 'reply'},
            {'role': 'system', 'content': 'ignored'},
        ])

        self.assertEqual(result, {'content': 'Hi there'})
        sent = create.call_args.kwargs
        self.assertEqual([m['role'] for m in sent['messages']], ['user', 'assistant', 'user'])
        self.assertEqual(sent['messages'][-1]['content'], 'hello')
        self.assertEqual(sent['model'], config.ANTHROPIC_MODEL)
        self.assertEqual(len(sent['tools']), 2)

    def test_tool_calls_become_actions(self, client_cls):
        event = {'title': 'Demo', 'date': '2026-03-03', 'type': 'meeting'}
        client_cls.return_value.messages.create.return_value = message(
            tool_block('add_calendar_event', event),
            text_block('Added the demo to your calendar.'),
            stop_reason='tool_use',
        )

        result = anthropic_service.chat('book a demo tomorrow')
        self.assertEqual(result['actions'], [{'type': 'add_calendar_event', 'data': event}])
        self.assertEqual(result['content'], 'Added the demo to your calendar.')

    def test_generate_post_uses_platform_instructions(self, client_cls):
        create = client_cls.return_value.messages.create
        create.return_value = message(text_block('Line one'), text_block('Line two'))

        content = anthropic_service.generate_post('automation wins', platform='tiktok')
        self.assertEqual(content, 'Line one\nLine two')

        sent = create.call_args.kwargs
        self.assertTrue(sent['messages'][0]['content'].startswith('Generate an Instagram post.'))
        self.assertIn('Topic/Request: automation wins', sent['messages'][0]['content'])
        self.assertIn('Elevates', sent['system'])


@patch('elevates.content.services.image_service.genai.Client')
class TestImageService(BaseTestCase):

    def test_missing_key(self, client_cls):
        patch.object(config, 'GEMINI_API_KEY', '').start()
        with self.assertRaises(ConfigurationError):
            image_service.generate_image('a rocket')

    def test_image_is_returned_as_data_url(self, client_cls):
        client_cls.return_value.models.generate_content.return_value = image_response(
            SimpleNamespace(inline_data=None, text='A rocket over a city'),
            image_part(),
        )

        result = image_service.generate_image('a rocket')
        self.assertEqual(result['image'], 'data:image/png;base64,cG5n')
        self.assertEqual(result['description'], 'A rocket over a city')

        contents = client_cls.return_value.models.generate_content.call_args.kwargs['contents']
        self.assertIn('User request: a rocket', contents)

    def test_response_without_image(self, client_cls):
        client_cls.return_value.models.generate_content.return_value = image_response(
            SimpleNamespace(inline_data=None, text='Sorry'),
        )
        with self.assertRaises(UpstreamServiceError) as ctx:
            image_service.generate_image('a rocket')
        self.assertEqual(ctx.exception.status_code, 500)

    def test_quota_errors_are_mapped(self, client_cls):
        client_cls.return_value.models.generate_content.side_effect = RuntimeError('quota exhausted')
        with self.assertRaises(UpstreamServiceError) as ctx:
            image_service.generate_image('a rocket')
        self.assertEqual(ctx.exception.status_code, 429)

    def test_key_errors_are_mapped(self, client_cls):
        client_cls.return_value.models.generate_content.side_effect = RuntimeError('API key not valid')
        with self.assertRaises(UpstreamServiceError) as ctx:
            image_service.generate_image('a rocket')
        self.assertEqual(ctx.exception.status_code, 401)


class TestContentRoutes(APITestCase):

    def setUp(self):
        super().setUp()
        self.login()

    def test_message_is_required(self):
        response = self.client.post('/api/chat', json={'history': []})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error'], 'Message is required')

    @patch('elevates.content.api.content_routes.anthropic_service.chat')
    def test_chat(self, chat):
        chat.return_value = {'content': 'Done', 'actions': [{'type': 'add_task', 'data': {'title': 'Call'}}]}
        response = self.client.post('/api/chat', json={'message': 'remind me', 'systemPrompt': 'Be brief.'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['actions'][0]['type'], 'add_task')
        chat.assert_called_once_with('remind me', system_prompt='Be brief.', history=None)

    @patch('elevates.content.api.content_routes.anthropic_service.chat')
    def test_chat_upstream_failure(self, chat):
        chat.side_effect = UpstreamServiceError('API Error: overloaded', status_code=529)
        response = self.client.post('/api/chat', json={'message': 'hi'})
        self.assertEqual(response.status_code, 529)
        self.assertEqual(response.get_json()['error'], 'API Error: overloaded')

    def test_chat_without_key_is_server_error(self):
        patch.object(config, 'ANTHROPIC_API_KEY', '').start()
        response = self.client.post('/api/chat', json={'message': 'hi'})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()['error'], 'ANTHROPIC_API_KEY not configured')

    @patch('elevates.content.api.content_routes.anthropic_service.generate_post')
    def test_generate_post(self, generate_post):
        generate_post.return_value = 'Post body'
        response = self.client.post('/api/generate-post', json={'prompt': 'launch', 'platform': 'instagram'})
        self.assertEqual(response.get_json(), {'content': 'Post body'})
        generate_post.assert_called_once_with('launch', platform='instagram', tone_prompt=None)

        self.assertEqual(self.client.post('/api/generate-post', json={}).status_code, 400)

    @patch('elevates.content.api.content_routes.image_service.generate_image')
    def test_generate_image(self, generate_image):
        generate_image.return_value = {'image': 'data:image/png;base64,cG5n', 'description': 'ok'}
        response = self.client.post('/api/generate-image', json={'prompt': 'a rocket'})
        self.assertEqual(response.get_json()['image'], 'data:image/png;base64,cG5n')

        self.assertEqual(self.client.post('/api/generate-image', json={'prompt': ''}).status_code, 400)

    def test_requires_session(self):
        anonymous = self.app.test_client()
        self.assertEqual(anonymous.post('/api/chat', json={'message': 'hi'}).status_code, 401)
