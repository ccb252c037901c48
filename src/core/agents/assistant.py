from typing import Annotated, Any, AsyncIterator, Optional, TypedDict

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from langgraph.graph import END, START, StateGraph
from langgraph.graph.message import add_messages

from core.domain import HistoryEntry, TokenEvent
from core.langgraph_adapter import adapt_events


SYSTEM_PROMPT = """You are JENESI Autobot, a highly advanced AI interface designed for complex problem solving across Tech, Science, and Business domains.

Capabilities & Persona:
1. **Intent Recognition**: Immediately identify if the user needs Code (Python/React), Real-time Data (Stocks/News), or Creative Content.
2. **Grounded Reality**: Say so plainly when a question needs current information you may not have.
3. **Formatting**: Always use Markdown. Use fenced code blocks with language tags for code.
4. **Tone**: Futuristic, precise, professional, yet helpful. You are the bridge between human intent and digital action.
"""


class AgentState(TypedDict):
    messages: Annotated[list[BaseMessage], add_messages]


def build_llm(model: str, temperature: float = 0.7):
    return ChatOpenAI(
        model=model,
        temperature=temperature,
        streaming=True,
    )


def chatbot_factory(llm):
    async def chatbot(state: AgentState):
        msgs = [SystemMessage(SYSTEM_PROMPT), *state["messages"]]
        ai_msg = await llm.ainvoke(msgs)
        return {'messages': [ai_msg]}
    return chatbot


def build_agent(model: str, llm: Optional[Any] = None):
    """
    Single node chat graph. `llm` overrides the OpenAI chat model (tests pass a fake).
    """
    chatbot = chatbot_factory(llm if llm is not None else build_llm(model))

    graph_builder = StateGraph(AgentState)
    graph_builder.add_node('chatbot', chatbot)
    graph_builder.add_edge(START, 'chatbot')
    graph_builder.add_edge('chatbot', END)

    return graph_builder.compile(name="jenesi_assistant")


def to_langchain(history: list[HistoryEntry]) -> list[BaseMessage]:
    return [
        HumanMessage(content=entry['text']) if entry['role'] == 'user'
        else AIMessage(content=entry['text'])
        for entry in history
    ]


class LangGraphGenerator:
    """Generation collaborator backed by the assistant graph."""

    def __init__(self, model: str, agent=None):
        self.agent = agent if agent is not None else build_agent(model)

    async def send(self, history: list[HistoryEntry], new_text: str) -> AsyncIterator[TokenEvent]:
        payload = {"messages": [*to_langchain(history), HumanMessage(content=new_text)]}
        stream = self.agent.astream_events(payload, version='v2')
        return adapt_events(stream)
