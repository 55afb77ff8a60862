"""
Chat-completions client using direct REST API calls.
Sends one categorization prompt and returns the decoded JSON object.
"""
import json
from typing import Any, Dict, Optional

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.config import get_settings
from core.exceptions import ConfigurationError, LLMError
from core.logger import setup_logger

logger = setup_logger(__name__)
settings = get_settings()


def strip_code_fences(content: str) -> str:
    """Remove a surrounding Markdown code block, if any."""
    content_stripped = content.strip()
    if content_stripped.startswith("```"):
        lines = content_stripped.split("\n")
        if lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        content_stripped = "\n".join(lines).strip()
    return content_stripped


class LLMClientWrapper:
    """Wrapper for an OpenAI-compatible chat-completions endpoint."""
    
    def __init__(
        self,
        api_key: Optional[str],
        gateway_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        """
        Initialize REST API client.
        
        Raises:
            ConfigurationError: If no API key is given
        """
        if not api_key:
            raise ConfigurationError(
                "API key required for categorization",
                details={"required_key": "api_key"}
            )
        
        self.api_key = api_key
        self.gateway_url = gateway_url or settings.llm_gateway_url
        self.model = model or settings.llm_model
        self.timeout = timeout or settings.llm_timeout
        
        logger.debug(f"Initialized LLM client with model: {self.model}, gateway: {self.gateway_url}")
    
    @retry(
        stop=stop_after_attempt(settings.llm_max_attempts),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(LLMError),
        reraise=True
    )
    def call_chat_completion(self, prompt: str, temperature: float = 0.1) -> Dict[str, Any]:
        """
        Send a single user prompt and decode the JSON object in the reply.
        
        Args:
            prompt: User message
            temperature: Model temperature (0.0-1.0)
        
        Returns:
            Parsed JSON object from the assistant message
        
        Raises:
            LLMError: On network failure, non-success status, or unparseable reply
        """
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}"
        }
        
        try:
            response = requests.post(
                self.gateway_url,
                headers=headers,
                data=json.dumps(payload),
                timeout=self.timeout
            )
            
            # Raise for HTTP errors (4xx, 5xx)
            response.raise_for_status()
            
            completion_data = response.json()
            
            try:
                content = completion_data["choices"][0]["message"]["content"]
            except (KeyError, IndexError, TypeError):
                content = None
            
            if not content:
                raise ValueError("Unexpected response structure: no message content in 'choices'")
            
            result = json.loads(strip_code_fences(content))
            if not isinstance(result, dict):
                raise ValueError(f"Expected a JSON object, got {type(result).__name__}")
            
            if isinstance(completion_data, dict) and "usage" in completion_data:
                usage = completion_data["usage"] or {}
                logger.debug(
                    f"Token usage - Input: {usage.get('prompt_tokens', 'N/A')}, "
                    f"Output: {usage.get('completion_tokens', 'N/A')}"
                )
            
            return result
        
        except requests.exceptions.Timeout as e:
            logger.error(f"Gateway request timeout after {self.timeout}s: {e}")
            raise LLMError(
                f"Gateway request timeout after {self.timeout}s",
                details={"gateway_url": self.gateway_url, "timeout": self.timeout}
            )
        
        except requests.exceptions.HTTPError as e:
            logger.error(f"Gateway HTTP error: {e}")
            raise LLMError(
                f"LLM categorization failed: {e}",
                details={
                    "gateway_url": self.gateway_url,
                    "status_code": getattr(e.response, "status_code", None),
                }
            )
        
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            logger.error(f"Error parsing gateway response: {e}")
            raise LLMError(
                f"Gateway response parsing error: {str(e)}",
                details={"error": str(e)}
            )

        except requests.exceptions.RequestException as e:
            logger.error(f"Gateway request failed: {e}")
            raise LLMError(
                f"Failed to connect to gateway: {str(e)}",
                details={"gateway_url": self.gateway_url, "error": str(e)}
            )
