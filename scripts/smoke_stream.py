import requests
import argparse
import json
import sys
import os

# Add the parent directory to the path so we can import from app
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.logging import get_logger

logger = get_logger(__name__)


def check_health(api_url: str) -> bool:
    logger.info("\n=== Checking health endpoint ===")
    try:
        health_response = requests.get(f"{api_url}/api/v1/health", timeout=10)
        logger.info(f"Status code: {health_response.status_code}")
        logger.info(f"Response: {health_response.json()}")
        assert health_response.status_code == 200, "Health endpoint failed"
        logger.info("✅ Health endpoint OK")
        return True
    except Exception as e:
        logger.error(f"❌ Health check failed: {str(e)}")
        return False


def stream_question(api_url: str, question: str, thinking_mode: bool = False) -> bool:
    """Post a question to the streaming endpoint and print each event"""
    logger.info(f"\n=== Streaming answer for: {question} ===")
    payload = {"question": question, "thinkingMode": thinking_mode}

    answer = []
    try:
        with requests.post(f"{api_url}/api/v1/chat/stream", json=payload, stream=True, timeout=60) as response:
            logger.info(f"Status code: {response.status_code}")
            assert response.status_code == 200, "Stream endpoint failed"

            for line in response.iter_lines(decode_unicode=True):
                if not line:
                    continue
                event = json.loads(line)

                if event["type"] == "content":
                    answer.append(event["content"])
                elif event["type"] == "done":
                    logger.info(f"Provider: {event['provider']}")
                    assert "".join(answer) == event["fullResponse"], "Content chunks do not match the final answer"
                else:
                    logger.info(f"{event['type']}: {event}")

        logger.info(f"Answer: {''.join(answer)[:200]}...")
        logger.info("✅ Stream completed")
        return True
    except Exception as e:
        logger.error(f"❌ Streaming failed: {str(e)}")
        return False


def main():
    parser = argparse.ArgumentParser(description='Smoke test the CourseConnect Answer API')
    parser.add_argument('--api_url', type=str, default='http://localhost:8000',
                        help='URL of the running API')
    parser.add_argument('--question', type=str, default='Explain how photosynthesis works',
                        help='Question to ask')
    parser.add_argument('--thinking', action='store_true',
                        help='Request thinking steps')

    args = parser.parse_args()

    success = check_health(args.api_url) and stream_question(args.api_url, args.question, args.thinking)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
