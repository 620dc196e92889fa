"""Pytest configuration and fixtures for the modification pipeline tests."""

import asyncio
from typing import Any, Dict, List

import pytest
from langchain_core.messages import AIMessageChunk

from routes import database
from routes.result_cache import pattern_cache


class FakeStreamingLLM:
    """Stands in for a LangChain chat model: streams a canned response in small chunks.

    With `delay` set it stalls after every chunk, and notes whether it was cancelled mid-stream.
    """

    def __init__(self, response: str = "", input_tokens: int = 120, output_tokens: int = 40, chunk_size: int = 16):
        self.response = response
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.chunk_size = chunk_size
        self.delay = 0.0
        self.cancelled = False
        self.calls: List[List[Any]] = []
        self.error: Exception = None

    async def astream(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        text = self.response
        try:
            for i in range(0, len(text), self.chunk_size):
                yield AIMessageChunk(content=text[i:i + self.chunk_size])
                if self.delay:
                    await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        yield AIMessageChunk(content="", usage_metadata={
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.input_tokens + self.output_tokens,
        })


@pytest.fixture
def fake_llm(monkeypatch) -> FakeStreamingLLM:
    """Replace model resolution so no provider is contacted."""
    llm = FakeStreamingLLM()
    selected: Dict[str, Any] = {}

    def _select(model_str, max_tokens=4000, temperature=0.3):
        selected.update(model=model_str, max_tokens=max_tokens, temperature=temperature)
        return llm

    monkeypatch.setattr("routes.edit_generator._select_model", _select)
    llm.selected = selected
    return llm


@pytest.fixture(autouse=True)
def temp_memory_db(tmp_path, monkeypatch):
    """Point the session memory store at a throwaway database."""
    database.close_connection()
    monkeypatch.setattr(database, "DB_PATH", tmp_path / "session_memory.db")
    yield tmp_path / "session_memory.db"
    database.close_connection()


@pytest.fixture(autouse=True)
def _clear_pattern_cache():
    pattern_cache.clear()
    yield
    pattern_cache.clear()


@pytest.fixture
def sample_project() -> Dict[str, str]:
    """A small React + CSS project."""
    return {
        "index.html": (
            "<!DOCTYPE html>\n"
            "<html>\n"
            "<head>\n"
            "  <title>Demo</title>\n"
            "  <link rel=\"stylesheet\" href=\"src/styles.css\">\n"
            "</head>\n"
            "<body>\n"
            "  <div id=\"root\"></div>\n"
            "  <script type=\"module\" src=\"/src/main.tsx\"></script>\n"
            "</body>\n"
            "</html>\n"
        ),
        "src/styles.css": (
            ".button { color: #333; }\n"
            "\n"
            ".header {\n"
            "  padding: 16px;\n"
            "  background-color: white;\n"
            "}\n"
        ),
        "src/main.tsx": (
            "import React from 'react';\n"
            "import ReactDOM from 'react-dom/client';\n"
            "import App from './App';\n"
            "import './styles.css';\n"
            "\n"
            "ReactDOM.createRoot(document.getElementById('root')!).render(<App />);\n"
        ),
        "src/App.tsx": (
            "import Header from './components/Header';\n"
            "import Button from './components/Button';\n"
            "\n"
            "export default function App() {\n"
            "  return (\n"
            "    <div className=\"app\">\n"
            "      <Header />\n"
            "      <Button label=\"Start\" />\n"
            "    </div>\n"
            "  );\n"
            "}\n"
        ),
        "src/components/Header.tsx": (
            "export default function Header() {\n"
            "  return <header className=\"header\"><h1>Welcome</h1></header>;\n"
            "}\n"
        ),
        "src/components/Button.tsx": (
            "export function Button({ label }: { label: string }) {\n"
            "  return <button className=\"button\">{label}</button>;\n"
            "}\n"
            "export default Button;\n"
        ),
    }


@pytest.fixture
def button_color_response() -> str:
    """A well-formed model response for the button colour request."""
    return """{
  "intent": "Change the button text colour",
  "summary": "Button colour updated to #03A5C0",
  "affectedFiles": ["src/styles.css"],
  "modifications": [
    {"type": "css-change", "path": "src/styles.css", "target": ".button", "property": "color", "value": "#03A5C0"}
  ]
}"""
