"""
Conversational agent that exposes the cloner as a tool, using Gemini

The model answers in JSON steps (START, THINK, TOOL, OBSERVE, OUTPUT). TOOL
steps are dispatched to the tool registry and their result is fed back as an
OBSERVE step until the model produces OUTPUT.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import google.generativeai as genai
from pydantic import BaseModel, ConfigDict, Field

from .cloner import WebsiteCloner
from .config import Settings
from .logging_setup import setup_logging

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are an AI agent with JSON-only replies.
Steps = START, THINK, TOOL, OBSERVE, OUTPUT.
Each step must return valid JSON with fields:
- step: one of START, THINK, TOOL, OBSERVE, OUTPUT
- content: explanation or final result (always required)
- tool_name: (only for TOOL)
- input: (only for TOOL)
Reply with exactly one step per message and wait for the OBSERVE step after each TOOL.
Available tools:
- createFolder(name): Creates a folder in the working directory.
- createFile(path, content): Writes a text file in the working directory.
- cloneWebsiteToZip(url): Clones a site (dynamic via a headless browser or static via fetch) into a zip file.
"""

Tool = Callable[..., Awaitable[Dict[str, Any]]]


class ToolRegistry:
    """Named async tools the agent may call"""

    def __init__(self):
        self._tools: Dict[str, Tool] = {}

    def register(self, name: str, tool: Tool) -> None:
        self._tools[name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return sorted(self._tools)

    async def invoke(self, name: str, arguments: List[Any]) -> Dict[str, Any]:
        """
        Call a tool and return its result, or {"error": ...} if it raised

        Raises:
            KeyError: if no tool has that name
        """
        tool = self._tools[name]
        try:
            return await tool(*arguments)
        except Exception as e:
            logger.warning("Tool %s failed: %s: %s", name, type(e).__name__, e)
            return {"error": str(e)}


def _inside(work_dir: Path, relative: str) -> Path:
    base = work_dir.resolve()
    target = (base / relative).resolve()
    if target != base and base not in target.parents:
        raise ValueError(f"Path {relative!r} is outside the working directory")
    return target


def build_tools(cloner: WebsiteCloner, settings: Settings) -> ToolRegistry:
    """Register the cloner and the file helpers"""
    registry = ToolRegistry()
    work_dir = Path(settings.work_dir)

    async def clone_website_to_zip(url: str) -> Dict[str, Any]:
        result = await cloner.clone_website(url)
        return {
            "result": result.message,
            "zipPath": result.archive_path,
            "publicZipPath": result.public_archive_path,
            "zipName": result.archive_file_name,
            "mode": result.mode.value,
            "failedAssets": result.failed_assets,
        }

    async def create_folder(name: str) -> Dict[str, Any]:
        _inside(work_dir, name).mkdir(parents=True, exist_ok=True)
        return {"result": f"Folder '{name}' created."}

    async def create_file(path: str, content: str = "") -> Dict[str, Any]:
        target = _inside(work_dir, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return {"result": f"File '{path}' created."}

    registry.register("cloneWebsiteToZip", clone_website_to_zip)
    registry.register("createFolder", create_folder)
    registry.register("createFile", create_file)
    return registry


def build_model(settings: Settings) -> "genai.GenerativeModel":
    """Create the Gemini chat model for the agent"""
    if not settings.google_api_key:
        raise ValueError("GOOGLE_API_KEY is not set in environment variables")

    genai.configure(api_key=settings.google_api_key)
    return genai.GenerativeModel(
        model_name=settings.agent_model,
        system_instruction=SYSTEM_PROMPT,
        generation_config={
            "temperature": 0.1,
            "response_mime_type": "application/json",
        },
    )


def _parse_step(text: str) -> Dict[str, Any]:
    """Parse a model reply, tolerating a ```json fence around it"""
    text = text.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    step = json.loads(text)
    if not isinstance(step, dict):
        raise ValueError("step is not a JSON object")
    return step


class AgentConfig(BaseModel):
    """Everything the agent loop needs, built once and handed to Agent"""
    model_config = ConfigDict(arbitrary_types_allowed=True, protected_namespaces=())

    model: Any = Field(..., description="Chat model exposing generate_content_async(history)")
    tools: ToolRegistry
    max_steps: int = Field(default=15, ge=1)
    timeout: float = Field(default=60.0, gt=0, description="Seconds allowed for one model reply")

    @classmethod
    def from_settings(cls, settings: Settings, cloner: WebsiteCloner, model=None) -> "AgentConfig":
        return cls(
            model=model if model is not None else build_model(settings),
            tools=build_tools(cloner, settings),
            max_steps=settings.agent_max_steps,
            timeout=settings.agent_timeout,
        )


class Agent:
    """JSON-step agent loop over a chat model and a tool registry"""

    def __init__(self, config: AgentConfig):
        self.config = config
        self.model = config.model
        self.tools = config.tools
        self.max_steps = config.max_steps
        self.timeout = config.timeout

    async def run(self, prompt: str) -> Optional[str]:
        """
        Run the conversation for one user prompt

        Returns:
            The content of the OUTPUT step, or None if the loop stopped early
            (unparseable reply, unknown tool or step, or too many steps)
        """
        history: List[Dict[str, Any]] = [{"role": "user", "parts": [prompt]}]

        for _ in range(self.max_steps):
            response = await asyncio.wait_for(
                self.model.generate_content_async(history),
                timeout=self.timeout,
            )
            logger.debug("Raw model response: %s", response.text)

            try:
                step = _parse_step(response.text)
            except ValueError as e:
                logger.error("Could not parse model reply as a JSON step: %s", e)
                return None

            kind = str(step.get("step", "")).upper()
            history.append({"role": "model", "parts": [json.dumps(step)]})

            if kind in ("START", "THINK"):
                logger.info("%s: %s", kind, step.get("content"))
            elif kind == "TOOL":
                name = step.get("tool_name")
                if self.tools.get(name) is None:
                    logger.error("Unknown tool requested: %s", name)
                    return None

                raw_input = step.get("input")
                arguments = raw_input if isinstance(raw_input, list) else ([] if raw_input is None else [raw_input])
                observation = await self.tools.invoke(name, arguments)
                logger.info("Tool %s -> %s", name, observation)
                history.append({
                    "role": "user",
                    "parts": [json.dumps({"step": "OBSERVE", "content": observation})],
                })
            elif kind == "OUTPUT":
                content = step.get("content")
                logger.info("Final output: %s", content)
                return content if isinstance(content, str) else json.dumps(content)
            else:
                logger.error("Unexpected step %r from model", kind)
                return None

        logger.warning("Agent stopped after %d steps without OUTPUT", self.max_steps)
        return None


async def run_agent(prompt: str, settings: Settings) -> Optional[str]:
    cloner = WebsiteCloner(settings)
    try:
        agent = Agent(AgentConfig.from_settings(settings, cloner))
        return await agent.run(prompt)
    finally:
        await cloner.close()


def main():
    """Command-line entry point: site-mirror-agent "clone https://example.com" """
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_file)

    if len(sys.argv) < 2:
        print("Usage: site-mirror-agent <prompt>", file=sys.stderr)
        sys.exit(1)

    try:
        output = asyncio.run(run_agent(" ".join(sys.argv[1:]), settings))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if output is None:
        sys.exit(1)
    print(output)


if __name__ == "__main__":
    main()
