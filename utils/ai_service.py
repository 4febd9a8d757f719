"""
LLM client used for project generation, grading and survey analysis.

Both supported providers expose an OpenAI-compatible chat endpoint, so a
single ``openai.OpenAI`` client is pointed at whichever base URL is selected:

- ``ollama``: explicit remote tunnel URL, else ``USE_OLLAMA_REMOTE`` with the
  tailscale IP, else the local ``OLLAMA_API_URL``; served under ``/v1``.
- ``huggingface``: the inference router with ``HUGGINGFACE_API_KEY``.
"""
import logging

from openai import OpenAI, OpenAIError, APIConnectionError, RateLimitError, InternalServerError
from tenacity import (Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt,
                      wait_exponential)

from errors import ExternalServiceError

logger = logging.getLogger(__name__)

OLLAMA_PORT = 11434

# Transient failures worth another attempt; anything else (bad request, auth) fails fast
RETRYABLE_ERRORS = (APIConnectionError, RateLimitError, InternalServerError)

VALIDATION_PROMPT = """You are validating student responses. Accept ANY language including mixed English-Tagalog (Taglish), shortcuts, and slang.

Question 1: "What are you interested in learning?"
Answer: "{course_interest}"

Question 2: "What do you want to achieve with programming?"
Answer: "{learning_goals}"

ACCEPT these as VALID:
- Any mix of English and Tagalog, shortcuts and informal grammar
- "I dont know", "wala pa", "di ko sure" (uncertainty is OK)
- Any programming words: "web", "app", "coding", "games", etc.

REJECT only if:
- Only curse words with no programming mention
- Random letters like "aaaaa" or "qwerty"
- Only non-tech topics like "basketball" or "cooking"

If VALID, respond: "VALID"
If INVALID, respond: "INVALID: " then explain what word or phrase you did not understand (max 8 words)

Validate now:"""

SKILLS_PROMPT = """Analyze this student's programming skills and provide personalized learning recommendations.

Student Profile:
Primary Language: {language}
Self-Assessment Level: {level}
{assessment}
Your message MUST start with exactly:
"Hi {full_name},

Welcome to SkillVerse!"

After the greeting write ONE short, friendly paragraph (3-5 sentences) covering their current level in
{language}, what the assessment shows, one strength, one thing to work on, and a nudge to start the
mini projects. Plain text only, no markdown, simple everyday words."""


def resolve_endpoint(config) -> dict:
    """
    Pick the chat endpoint from configuration.

    Returns:
        dict with provider, base_url, model and api_key
    """
    provider = (config.get('AI_PROVIDER') or 'ollama').lower()

    if provider == 'huggingface':
        return {
            'provider': 'huggingface',
            'base_url': config.get('HUGGINGFACE_BASE_URL') or 'https://router.huggingface.co/v1',
            'model': config.get('HUGGINGFACE_MODEL') or 'Qwen/Qwen2.5-Coder-7B-Instruct',
            'api_key': config.get('HUGGINGFACE_API_KEY'),
        }

    if provider != 'ollama':
        logger.warning(f"Unknown AI_PROVIDER '{provider}', using ollama")

    remote_url = config.get('OLLAMA_REMOTE_URL')
    tailscale_ip = config.get('OLLAMA_TAILSCALE_IP')
    if remote_url:
        url = remote_url
        logger.info(f"Using remote Ollama URL: {url}")
    elif config.get('USE_OLLAMA_REMOTE') and tailscale_ip:
        url = f"http://{tailscale_ip}:{OLLAMA_PORT}"
        logger.info(f"Using tailscale Ollama URL: {url}")
    else:
        url = config.get('OLLAMA_API_URL') or f"http://localhost:{OLLAMA_PORT}"

    return {
        'provider': 'ollama',
        'base_url': f"{url.rstrip('/')}/v1",
        'model': config.get('OLLAMA_MODEL_NAME') or 'qwen2.5:7b',
        # Ollama ignores the key but the client requires one
        'api_key': 'ollama',
    }


class AIService:
    """Thin chat-completion wrapper with retry and error translation."""

    def __init__(self, config, client=None, wait=None):
        endpoint = resolve_endpoint(config)
        self.provider = endpoint['provider']
        self.base_url = endpoint['base_url']
        self.model = endpoint['model']
        self.timeout = config.get('AI_TIMEOUT_SECONDS') or 180
        self.max_attempts = config.get('AI_MAX_RETRIES') or 3
        self.wait = wait or wait_exponential(multiplier=1, min=1, max=30)

        self._client = client
        if self._client is None and endpoint['api_key']:
            self._client = OpenAI(
                api_key=endpoint['api_key'],
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        if self._client is None:
            logger.warning(f"AI provider '{self.provider}' is not configured (missing API key)")

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def generate(self, prompt: str, temperature: float = 0.7, max_tokens: int = 2000,
                 system_prompt: str = None) -> str:
        """
        Send a single-turn chat request and return the reply text.

        Raises:
            ExternalServiceError: not configured, every attempt failed, or the reply was empty
        """
        if not self.is_configured:
            raise ExternalServiceError(f"AI provider '{self.provider}' is not configured")

        messages = []
        if system_prompt:
            messages.append({'role': 'system', 'content': system_prompt})
        messages.append({'role': 'user', 'content': prompt})

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        logger.info(f"AI request provider={self.provider}, model={self.model}, prompt={len(prompt)} chars")
        try:
            for attempt in retrying:
                with attempt:
                    response = self._client.chat.completions.create(
                        model=self.model,
                        messages=messages,
                        temperature=temperature,
                        max_tokens=max_tokens,
                    )
        except OpenAIError as e:
            logger.error(f"AI request failed after {self.max_attempts} attempt(s): {e}")
            raise ExternalServiceError(f"AI service unavailable: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise ExternalServiceError("Empty response from AI service")
        return content.strip()

    def check_connection(self) -> dict:
        """Probe the endpoint by listing models."""
        status = {'provider': self.provider, 'model': self.model, 'url': self.base_url}
        if not self.is_configured:
            return {**status, 'connected': False, 'error': 'not configured'}
        try:
            self._client.models.list()
            return {**status, 'connected': True}
        except OpenAIError as e:
            logger.error(f"AI connection check failed: {e}")
            return {**status, 'connected': False, 'error': str(e)}

    def validate_learning_inputs(self, course_interest: str, learning_goals: str) -> dict:
        """
        Ask the model whether the survey's free-text answers are meaningful.

        Returns:
            {'valid': bool, 'reason': str}
        """
        prompt = VALIDATION_PROMPT.format(course_interest=course_interest, learning_goals=learning_goals)
        result = self.generate(prompt, temperature=0.3, max_tokens=100)
        return parse_validation(result)

    def analyze_student_skills(self, survey: dict, full_name: str = 'Student') -> dict:
        try:
            analysis = self.generate(build_skills_prompt(survey, full_name), temperature=0.7, max_tokens=1000)
        except ExternalServiceError as e:
            return {'success': False, 'analysis': None, 'error': e.message}
        logger.info(f"Skills analysis generated for {full_name}")
        return {'success': True, 'analysis': analysis}


def parse_validation(text: str) -> dict:
    upper = text.upper()
    valid = 'VALID' in upper and 'INVALID' not in upper
    reason = text
    for prefix in ('INVALID', 'VALID'):
        if reason.upper().startswith(prefix):
            reason = reason[len(prefix):]
            break
    reason = reason.lstrip(' :-').replace('**', '').replace('###', '').strip()
    if not reason:
        reason = 'OK' if valid else 'Please tell us about programming or say I dont know'
    return {'valid': valid, 'reason': reason}


def build_skills_prompt(survey: dict, full_name: str) -> str:
    language = survey.get('primary_language') or 'java'
    level = survey.get(f'{language}_expertise') or 'not specified'
    score = (survey.get(f'{language}_questions') or {}).get('score')

    assessment = ''
    if score:
        assessment = (
            f"\n{language.capitalize()} Assessment Results:\n"
            f"- Overall Score: {score.get('total', 0)}/10 ({score.get('percentage', 0)}%)\n"
            f"- Easy Questions: {score.get('easy', 0)}/3 correct\n"
            f"- Medium Questions: {score.get('medium', 0)}/4 correct\n"
            f"- Hard Questions: {score.get('hard', 0)}/3 correct\n"
        )
    return SKILLS_PROMPT.format(language=language.capitalize(), level=level,
                                assessment=assessment, full_name=full_name)
