"""Prompt construction and LLM summaries (OpenAI or Anthropic)"""

import logging
import os
from pathlib import Path
from string import Template
from typing import Optional

from anthropic import Anthropic, AnthropicError
from openai import OpenAI, OpenAIError

from tldw_errors import ConfigError, ExternalToolError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = 'You are a helpful assistant that creates clear, structured summaries of video transcripts.'

DEFAULT_PROMPT = """Summarize the following YouTube video transcript.

Title: ${title}
Channel: ${channel}
Description: ${description}

Provide a clear summary with:
1. Main topic (1-2 sentences)
2. Key points (3-5 bullet points)
3. Important details or examples mentioned
4. Conclusion or main takeaway

Answer in Markdown.

Transcript:
${transcript}
"""

# Characters, not tokens; conservative for every supported model
MAX_CONTEXT = 100000

PROMPT_FILE_SUFFIXES = ('.txt', '.md', '.template', '.tmpl')


def is_likely_file_path(value: str) -> bool:
    if '/' in value or '\\' in value:
        return True
    if any(suffix in value for suffix in PROMPT_FILE_SUFFIXES):
        return True
    if len(value) > 200:
        return False
    return ' ' not in value and '\n' not in value


class PromptBuilder:
    """Fill the prompt template with transcript and video fields.

    The template comes from, in order: the `prompt` setting (a file path or
    the template text itself), `prompt.txt` in the config directory, or the
    built-in default.
    """

    def __init__(self, prompt_setting: str = '', config_dir=None):
        self.prompt_setting = prompt_setting or ''
        self.config_dir = Path(config_dir) if config_dir else None

    def template_text(self) -> str:
        setting = self.prompt_setting
        if setting:
            if is_likely_file_path(setting) and os.path.isfile(setting):
                return self._read(Path(setting))
            return setting

        if self.config_dir is not None:
            default_file = self.config_dir / 'prompt.txt'
            if default_file.is_file():
                return self._read(default_file)

        return DEFAULT_PROMPT

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding='utf-8')
        except OSError as e:
            raise ConfigError(f"reading prompt template {path}: {e}")

    def build(self, transcript: str, title: str = '', channel: str = '', description: str = '') -> str:
        template = Template(self.template_text())
        return template.safe_substitute(
            title=title,
            channel=channel,
            description=description,
            transcript=transcript,
        )


class Summarizer:
    def __init__(self, settings, provider: Optional[str] = None, model: Optional[str] = None, client=None):
        self.provider = provider or settings.provider
        if self.provider == 'openai':
            self.api_key = settings.openai_api_key
            self.model = model or settings.tldr_model
        elif self.provider == 'anthropic':
            self.api_key = settings.anthropic_api_key
            self.model = model or settings.anthropic_model
        else:
            raise ConfigError(f"unknown provider: {self.provider}")
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens
        self.timeout = settings.summary_timeout
        self._client = client

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                env_var = 'OPENAI_API_KEY' if self.provider == 'openai' else 'ANTHROPIC_API_KEY'
                raise ConfigError(f"{self.provider} API key not found. Set {env_var}")
            if self.provider == 'openai':
                self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
            else:
                self._client = Anthropic(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def summarize(self, prompt: str) -> str:
        """Summarize a filled prompt; oversized prompts are done part by part"""
        if len(prompt) <= MAX_CONTEXT:
            return self._complete(prompt)

        parts = [prompt[i:i + MAX_CONTEXT] for i in range(0, len(prompt), MAX_CONTEXT)]
        logger.info("Prompt is %d characters, summarizing in %d parts", len(prompt), len(parts))
        summaries = []
        for i, part in enumerate(parts, 1):
            summaries.append(self._complete(f"[Part {i} of {len(parts)}]\n\n{part}"))

        final_prompt = 'Combine these partial summaries into one coherent summary:\n\n' + '\n\n---\n\n'.join(summaries)
        return self._complete(final_prompt)

    def _complete(self, prompt: str) -> str:
        try:
            if self.provider == 'openai':
                return self._summarize_openai(prompt)
            return self._summarize_anthropic(prompt)
        except (OpenAIError, AnthropicError) as e:
            raise ExternalToolError(self.provider, 'summary request failed', str(e))

    def _summarize_openai(self, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {'role': 'system', 'content': SYSTEM_PROMPT},
                {'role': 'user', 'content': prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not response.choices:
            raise ExternalToolError('openai', 'no response choices returned')
        return response.choices[0].message.content or ''

    def _summarize_anthropic(self, prompt: str) -> str:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=SYSTEM_PROMPT,
            messages=[{'role': 'user', 'content': prompt}],
        )
        return response.content[0].text
