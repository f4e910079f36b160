"""vidqa MCP Server — expose video Q&A as tools for any MCP-capable agent.

Run:
    python -m vidqa.mcp_server

Or add to your MCP config:
    {
      "mcpServers": {
        "vidqa": {
          "command": "python",
          "args": ["-m", "vidqa.mcp_server"],
          "env": {
            "VIDQA_LLM_API_KEY": "sk-or-v1-your-key",
            "VIDQA_LLM_BASE_URL": "https://openrouter.ai/api/v1",
            "VIDQA_DB_PATH": "/path/to/vidqa.sqlite3"
          }
        }
      }
    }

Every tool acts on behalf of VIDQA_MCP_USER (default "mcp").
"""

from mcp.server.fastmcp import FastMCP

from . import config

mcp = FastMCP("vidqa")


def _pipeline():
    from .service import ConversationPipeline
    from .store import ChatStore

    return ConversationPipeline(ChatStore())


def _user() -> str:
    return config.get("VIDQA_MCP_USER", "mcp")


@mcp.tool()
def ask_video(video_id: str, question: str) -> str:
    """Answer a question about one video from its transcript.

    Picks the transcript passages that match the question and answers from
    them. Nothing is stored; each call counts against the daily AI quota.

    Args:
        video_id: ID of the video
        question: What you want to know about it
    """
    from .errors import VidqaError

    try:
        reply = _pipeline().handle_one_shot_question(video_id, _user(), question)
    except VidqaError as exc:
        return f"error: {exc.message}"
    return f"{reply.answer}\n\n[{reply.ai.provider}, context {reply.context.quality.value}]"


@mcp.tool()
def search_transcript(video_id: str, query: str = "", start: str = "", end: str = "", page: int = 1) -> str:
    """Search a video's transcript by text and time range.

    Returns matching segments with timestamps. Use this to quote the video
    or find where something is said.

    Args:
        video_id: ID of the video
        query: Case-insensitive text to look for (empty = all segments)
        start: Only segments ending at or after this time (e.g. "01:30", "90")
        end: Only segments starting at or before this time
        page: Page of matches to return (50 per page)
    """
    from .errors import VidqaError
    from .retrieval import parse_time_query

    try:
        result = _pipeline().get_transcript(
            video_id, _user(), query=query,
            from_ms=parse_time_query(start), to_ms=parse_time_query(end),
            page=page, limit=50,
        )
    except VidqaError as exc:
        return f"error: {exc.message}"

    if not result.has_transcript:
        return f"no transcript for {video_id}"
    if not result.segments:
        return "no matching segments"

    shown = result.pagination
    lines = [
        f"{len(result.segments)} of {shown.total_items} matching segment(s), "
        f"page {shown.current_page}/{shown.total_pages}, in \"{result.title}\"\n"
    ]
    for segment in result.segments:
        lines.append(f"  [{segment.start_time} - {segment.end_time}] {segment.text}")
    return "\n".join(lines)


@mcp.tool()
def chat(message: str, session_id: str = "", video_id: str = "") -> str:
    """Send a message in a chat session, optionally about a video.

    Leave session_id empty to start a new session (bound to video_id if
    given). The reply ends with the session ID to continue the thread.

    Args:
        message: Your message
        session_id: Existing session to continue
        video_id: Video for a new session
    """
    from .errors import VidqaError

    pipeline = _pipeline()
    try:
        if not session_id:
            session_id = pipeline.create_session(_user(), video_id or None).id
        reply = pipeline.handle_chat_message(session_id, _user(), message)
    except VidqaError as exc:
        return f"error: {exc.message}"
    return f"{reply.reply}\n\nsession: {reply.session_id}"


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
