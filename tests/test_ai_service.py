"""Endpoint selection, retries and reply handling of the LLM client."""
from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError, BadRequestError
from tenacity import wait_none

from errors import ExternalServiceError
from utils.ai_service import AIService, build_skills_prompt, parse_validation, resolve_endpoint


class FakeCompletions:

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        message = SimpleNamespace(content=outcome)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(*outcomes):
    completions = FakeCompletions(outcomes)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions),
                           models=SimpleNamespace(list=lambda: []))


def connection_error():
    return APIConnectionError(request=httpx.Request('POST', 'http://ollama/v1/chat/completions'))


def service(client, **config):
    return AIService({'AI_PROVIDER': 'ollama', **config}, client=client, wait=wait_none())


# =============================================================================
# Endpoint selection
# =============================================================================

class TestResolveEndpoint:

    def test_local_ollama_by_default(self):
        endpoint = resolve_endpoint({})
        assert endpoint['provider'] == 'ollama'
        assert endpoint['base_url'] == 'http://localhost:11434/v1'

    def test_remote_url_wins(self):
        endpoint = resolve_endpoint({'OLLAMA_REMOTE_URL': 'https://tunnel.example.com/',
                                     'USE_OLLAMA_REMOTE': True, 'OLLAMA_TAILSCALE_IP': '100.64.0.1'})
        assert endpoint['base_url'] == 'https://tunnel.example.com/v1'

    def test_tailscale_when_remote_enabled(self):
        endpoint = resolve_endpoint({'USE_OLLAMA_REMOTE': True, 'OLLAMA_TAILSCALE_IP': '100.64.0.1'})
        assert endpoint['base_url'] == 'http://100.64.0.1:11434/v1'

    def test_huggingface(self):
        endpoint = resolve_endpoint({'AI_PROVIDER': 'HuggingFace', 'HUGGINGFACE_API_KEY': 'hf_x'})
        assert endpoint['provider'] == 'huggingface'
        assert endpoint['api_key'] == 'hf_x'
        assert endpoint['base_url'] == 'https://router.huggingface.co/v1'

    def test_huggingface_without_key_is_not_configured(self):
        assert not AIService({'AI_PROVIDER': 'huggingface'}).is_configured


# =============================================================================
# Requests
# =============================================================================

class TestGenerate:

    def test_returns_stripped_reply(self):
        client = fake_client('  VALID  ')
        ai = service(client)

        assert ai.generate('hello', temperature=0.2, max_tokens=50, system_prompt='Be brief') == 'VALID'
        call = client.chat.completions.calls[0]
        assert call['model'] == 'qwen2.5:7b'
        assert call['messages'][0] == {'role': 'system', 'content': 'Be brief'}
        assert call['max_tokens'] == 50

    def test_retries_connection_errors(self):
        client = fake_client(connection_error(), 'ok')
        assert service(client).generate('hello') == 'ok'
        assert len(client.chat.completions.calls) == 2

    def test_gives_up_after_max_attempts(self):
        client = fake_client(connection_error(), connection_error())
        with pytest.raises(ExternalServiceError, match='unavailable'):
            service(client, AI_MAX_RETRIES=2).generate('hello')

    def test_bad_request_is_not_retried(self):
        response = httpx.Response(400, request=httpx.Request('POST', 'http://ollama/v1/chat/completions'))
        client = fake_client(BadRequestError('bad', response=response, body=None), 'never')
        with pytest.raises(ExternalServiceError):
            service(client).generate('hello')
        assert len(client.chat.completions.calls) == 1

    def test_empty_reply(self):
        with pytest.raises(ExternalServiceError, match='Empty'):
            service(fake_client('   ')).generate('hello')

    def test_check_connection(self):
        assert service(fake_client()).check_connection()['connected'] is True


def test_parse_validation():
    assert parse_validation('VALID') == {'valid': True, 'reason': 'OK'}
    assert parse_validation('INVALID: "qwerty" is not a topic') == \
        {'valid': False, 'reason': '"qwerty" is not a topic'}


def test_analysis_failure_is_reported_not_raised():
    ai = service(fake_client(connection_error(), connection_error(), connection_error()))
    result = ai.analyze_student_skills({'primary_language': 'java'}, 'Ana')
    assert result['success'] is False
    assert result['analysis'] is None


def test_skills_prompt_includes_quiz_results():
    survey = {'primary_language': 'python', 'python_expertise': 'beginner',
              'python_questions': {'score': {'total': 7, 'percentage': 70, 'easy': 3, 'medium': 3, 'hard': 1}}}
    prompt = build_skills_prompt(survey, 'Ana Cruz')
    assert 'Overall Score: 7/10 (70%)' in prompt
    assert 'Hi Ana Cruz,' in prompt
