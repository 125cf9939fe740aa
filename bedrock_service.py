"""
Amazon Bedrock service module.
Reasoning backend for worker sub-tasks and embedding provider for vector search.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from config import aws_config, app_config, worker_config

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "bedrock-2023-05-31"

# Cohere Embed request limits
EMBED_BATCH_SIZE = 8
EMBED_BATCH_CHARS = 1800
EMBED_TEXT_CHARS = 1500

_EXPIRED_CREDENTIAL_CODES = {"ExpiredTokenException", "InvalidSignatureException", "UnrecognizedClientException"}


class BedrockError(Exception):
    """Custom exception for Bedrock service errors"""
    pass


@dataclass
class ToolUseBlock:
    """Represents a tool_use block from the response"""
    id: str = ""
    name: str = ""
    input: Dict = field(default_factory=dict)


@dataclass
class CompletionResult:
    """Result from a completion request"""
    content: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    tool_uses: List[ToolUseBlock] = field(default_factory=list)
    content_blocks: List[Dict] = field(default_factory=list)
    stop_reason: Optional[str] = None


def _session_kwargs(region: str) -> Dict[str, str]:
    """boto3.Session arguments: named profile first, then explicit keys, else the default chain."""
    kwargs = {"region_name": region}
    if aws_config.has_profile():
        kwargs["profile_name"] = aws_config.profile_name
    elif aws_config.has_explicit_credentials():
        kwargs["aws_access_key_id"] = aws_config.access_key_id
        kwargs["aws_secret_access_key"] = aws_config.secret_access_key
        if aws_config.has_session_token():
            kwargs["aws_session_token"] = aws_config.session_token
    return kwargs


def embedding_batches(texts: List[str]) -> Iterator[List[str]]:
    """Group texts into Cohere-sized requests. An oversized text goes alone, cut to EMBED_TEXT_CHARS."""
    batch: List[str] = []
    size = 0
    for text in texts:
        text = text[:EMBED_TEXT_CHARS]
        if batch and (len(batch) >= EMBED_BATCH_SIZE or size + len(text) > EMBED_BATCH_CHARS):
            yield batch
            batch, size = [], 0
        batch.append(text)
        size += len(text)
    if batch:
        yield batch


class BedrockService:
    """
    Thin async-friendly wrapper over the bedrock-runtime client.

    ``complete`` matches the reasoning interface the worker pool expects;
    ``embed_texts`` is the embedding function for the vector index.
    """

    def __init__(self, model_id: Optional[str] = None, region: Optional[str] = None, client: Any = None):
        self.model_id = model_id or worker_config.model
        self.region = region or aws_config.region
        self.client = client or self._create_client()
        logger.info(f"BedrockService initialized with model: {self.model_id}")

    def _create_client(self) -> Any:
        try:
            return boto3.Session(**_session_kwargs(self.region)).client("bedrock-runtime")
        except NoCredentialsError:
            raise BedrockError("AWS credentials not configured.")
        except BotoCoreError as e:
            raise BedrockError(f"Failed to initialize Bedrock client: {e}")

    def _invoke(self, model_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST a JSON body to a model and decode the JSON reply."""
        try:
            response = self.client.invoke_model(
                modelId=model_id,
                body=json.dumps(body),
                contentType="application/json",
                accept="application/json",
            )
            return json.loads(response["body"].read())
        except ClientError as e:
            error = e.response.get("Error", {})
            code = error.get("Code", "Unknown")
            message = error.get("Message", str(e))
            logger.error(f"Bedrock API error from {model_id}: {code} - {message}")
            if code in _EXPIRED_CREDENTIAL_CODES:
                raise BedrockError("AWS credentials expired or invalid. Please refresh.")
            raise BedrockError(f"Bedrock API error: {message}")

    @staticmethod
    def _request_body(
        messages: List[Dict],
        max_tokens: int,
        temperature: Optional[float],
        tools: Optional[List[Dict]] = None,
    ) -> Dict[str, Any]:
        """Anthropic Messages body. System messages are lifted into the system field."""
        system = "\n\n".join(m["content"] for m in messages if m.get("role") == "system" and m.get("content"))
        body: Dict[str, Any] = {
            "anthropic_version": ANTHROPIC_VERSION,
            "max_tokens": max_tokens,
            "messages": [m for m in messages if m.get("role") != "system"],
        }
        if system:
            body["system"] = system
        if temperature is not None:
            body["temperature"] = temperature
        if tools:
            body["tools"] = tools
        return body

    @staticmethod
    def _to_result(payload: Dict[str, Any]) -> CompletionResult:
        if not isinstance(payload, dict):
            raise BedrockError(f"Unexpected model response: {type(payload).__name__}")
        result = CompletionResult(stop_reason=payload.get("stop_reason"))
        for block in payload.get("content") or []:
            kind = block.get("type")
            if kind == "text":
                result.content += block.get("text", "")
                result.content_blocks.append(block)
            elif kind == "tool_use":
                result.tool_uses.append(ToolUseBlock(block.get("id", ""), block.get("name", ""), block.get("input") or {}))
                result.content_blocks.append(block)
        usage = payload.get("usage") or {}
        result.input_tokens = usage.get("input_tokens", 0)
        result.output_tokens = usage.get("output_tokens", 0)
        return result

    def complete_sync(
        self,
        messages: List[Dict],
        model: Optional[str] = None,
        max_tokens: int = 2048,
        temperature: Optional[float] = None,
        tools: Optional[List[Dict]] = None,
    ) -> CompletionResult:
        """Blocking completion call. Returns content, token usage and tool_use blocks."""
        model_id = model or self.model_id
        logger.info(f"Invoking model: {model_id} ({len(messages)} messages)")
        payload = self._invoke(model_id, self._request_body(messages, max_tokens, temperature, tools))
        return self._to_result(payload)

    async def complete(
        self,
        messages: List[Dict],
        model: Optional[str] = None,
        max_tokens: int = 2048,
        temperature: Optional[float] = None,
        tools: Optional[List[Dict]] = None,
    ) -> CompletionResult:
        """Async completion; the boto3 call runs in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: self.complete_sync(messages, model=model, max_tokens=max_tokens,
                                       temperature=temperature, tools=tools),
        )

    def embed_texts(
        self,
        texts: List[str],
        input_type: str = "search_document",
        model_id: Optional[str] = None,
    ) -> List[List[float]]:
        """Embed texts with Cohere Embed, one vector per text (empty when the model returned none).

        input_type: 'search_document' for corpus, 'search_query' for queries.
        """
        embed_model = model_id or app_config.embedding_model_id
        vectors: List[List[float]] = []
        for batch in embedding_batches(texts):
            payload = self._invoke(embed_model, {"texts": batch, "input_type": input_type})
            embeddings = payload.get("embeddings")
            if isinstance(embeddings, dict):
                # embedding_types responses are keyed by type
                embeddings = embeddings.get("float")
            if not isinstance(embeddings, list) or len(embeddings) != len(batch):
                logger.warning(f"Embedding response for {len(batch)} text(s) was malformed; skipping batch")
                embeddings = [[] for _ in batch]
            vectors.extend(embeddings)
        return vectors
