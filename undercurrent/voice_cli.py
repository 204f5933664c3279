"""
Voice CLI for the Undercurrent career discovery interview.

Run the interview from the terminal: the coach speaks through the
local speaker, answers are recorded from the microphone and
transcribed by Whisper. Typed input is always available.
"""

import argparse
import asyncio
import sys

from .agents.coaching import CoachingResponseGenerator
from .agents.interview_flow import ConversationMode, FlowStage, InterviewFlowController
from .agents.odyssey import OdysseyPhase
from .agents.synthesis import SynthesisGenerator
from .config import get_settings
from .exceptions import FlowStateError, SynthesisUnavailableError, TranscriptionError, ValidationError
from .llm.manager import LLMManager
from .logging_config import configure_logging
from .schemas.interview_data import ODYSSEY_DIMENSIONS, TOTAL_MAIN_QUESTIONS
from .schemas.session import UserProfile
from .storage.session_store import JsonSessionStore
from .voice.voices import CURATED_VOICES, DEFAULT_VOICE

COMMANDS = {
    "skip": "move on to the next question",
    "text": "switch to typed answers",
    "voice": "switch back to spoken answers",
    "quit": "save and exit (progress is kept)",
}


def print_header():
    """Print CLI header."""
    print("""
╔═══════════════════════════════════════════════════════════════╗
║                                                               ║
║     UNDERCURRENT - Career Discovery Interview                 ║
║                                                               ║
║     Speak your answers - your coach listens and replies       ║
║                                                               ║
╚═══════════════════════════════════════════════════════════════╝
    """)


def check_dependencies(typed_only: bool = False):
    """Check if voice dependencies are installed."""
    missing = []

    try:
        import faster_whisper  # noqa: F401
    except ImportError:
        missing.append("faster-whisper")

    if not typed_only:
        try:
            import sounddevice  # noqa: F401
        except (ImportError, OSError):
            missing.append("sounddevice (and the PortAudio library)")

        try:
            import pydub  # noqa: F401
        except ImportError:
            missing.append("pydub")

    if missing:
        print("Missing voice dependencies:")
        for dep in missing:
            print(f"   - {dep}")
        print("\nInstall with:")
        print("   pip install undercurrent")
        print("   # or run typed-only with --text")
        return False

    settings = get_settings()
    if settings.voice.elevenlabs_api_key:
        print("   ElevenLabs API key detected - coach voice enabled")
    else:
        print("   Tip: Set ELEVENLABS_API_KEY to hear your coach")

    return True


def resolve_voice(value):
    """Accept a catalog voice name or id."""
    if not value:
        return DEFAULT_VOICE
    for voice in CURATED_VOICES:
        if value.lower() in (voice.name.lower(), voice.voice_id.lower()):
            return voice
    return None


def test_audio(settings):
    """Test audio input/output."""
    from .voice.devices import MicrophoneRecorder, SpeakerPlayer
    from .voice.speech_to_text import WhisperTranscriber
    from .voice.text_to_speech import ElevenLabsSynthesizer

    print("\nTesting text-to-speech...")
    tts = ElevenLabsSynthesizer(
        api_key=settings.voice.elevenlabs_api_key or None,
        model=settings.voice.elevenlabs_model,
    )
    audio = tts.synthesize("Audio test successful. Text to speech is working.", DEFAULT_VOICE.voice_id)
    if not audio:
        print("   ✗ Text-to-speech produced no audio (check ELEVENLABS_API_KEY)")
        return False
    asyncio.run(SpeakerPlayer().play(audio))
    print("   ✓ Text-to-speech working")

    print("\n🎤 Testing microphone (speak something)...")
    if not MicrophoneRecorder.microphone_available():
        print("   ✗ No microphone found")
        return False

    recorder = MicrophoneRecorder()
    recorder.start()
    input("   Recording... press Enter to stop ")
    recording = recorder.stop()
    if not recording:
        print("   ✗ No audio recorded")
        return False
    print(f"   ✓ Recorded {len(recording)} bytes")

    print("   Transcribing...")
    stt = WhisperTranscriber(model_size="tiny", language=settings.voice.whisper_language)
    try:
        result = stt.transcribe(recording, recorder.mime_type)
    except TranscriptionError as e:
        print(f"   ✗ Transcription failed: {e}")
        return False
    print(f"   ✓ Transcribed: \"{result.text}\"")

    print("\n✅ All audio tests passed!")
    return True


class TerminalInterview:
    """Drives one interview in the terminal."""

    def __init__(self, flow: InterviewFlowController, voice, typed: bool):
        self.flow = flow
        self.voice = voice
        self.typed = typed

    async def say(self, text: str):
        print(f"\n🧭 Coach: {text}\n")
        if self.voice is None:
            return
        try:
            await self.voice.speak(text)
            await self.voice.wait_until_done()
        except FlowStateError as e:
            print(f"   (not spoken: {e})")

    async def listen(self, prompt: str = "You") -> str:
        """One answer from the user, spoken or typed. Returns a command or the answer text."""
        if self.typed or self.voice is None or self.voice.recorder is None:
            return (await asyncio.to_thread(input, f"{prompt}: ")).strip()

        reply = (await asyncio.to_thread(input, "Press Enter to speak (or type a command): ")).strip()
        if reply:
            return reply

        if not self.voice.start_recording():
            print("   Microphone unavailable, please type your answer.")
            return (await asyncio.to_thread(input, f"{prompt}: ")).strip()

        await asyncio.to_thread(input, "   🎙  Listening... press Enter when done ")
        text = await self.voice.stop_recording()
        if not text:
            print("   Couldn't catch that, please type your answer.")
            return (await asyncio.to_thread(input, f"{prompt}: ")).strip()

        print(f"   You said: \"{text}\"")
        return text

    def handle_command(self, text: str) -> bool:
        """True when the text was a mode command."""
        command = text.lower()
        if command == "text":
            self.typed = True
            print("   Switched to typed answers.")
            return True
        if command == "voice":
            self.typed = False
            print("   Switched to spoken answers.")
            return True
        if command in ("help", "?"):
            for name, description in COMMANDS.items():
                print(f"   {name:6} {description}")
            return True
        return False

    async def run_main(self) -> bool:
        """Main questions. Returns False when the user quits."""
        flow = self.flow
        while flow.stage == FlowStage.MAIN:
            if flow.mode == ConversationMode.MAIN:
                progress = flow.progress()
                print(f"── Question {progress['index'] + 1} of {TOTAL_MAIN_QUESTIONS} · {progress['section_title']} ──")
                await self.say(flow.prompt_text())

            answer = await self.listen()
            if not answer or self.handle_command(answer):
                continue
            if answer.lower() == "quit":
                return False
            if answer.lower() == "skip":
                flow.advance()
                continue

            result = await flow.submit_answer(answer)
            for warning in result.warnings:
                print(f"   ⚠ {warning}")
            if result.ai_response:
                print(f"\n🧭 Coach: {result.ai_response}\n")
                if self.voice is not None:
                    await self.voice.wait_until_done()
            if result.mode == ConversationMode.FOLLOWUP:
                print("   (reply to your coach, or say 'skip' to move on)")
        return True

    async def run_odyssey(self) -> bool:
        """Odyssey paths and ratings. Returns False when the user quits."""
        odyssey = self.flow.odyssey
        while odyssey is not None and not odyssey.is_done:
            await self.say(odyssey.prompt_text())

            if odyssey.phase == OdysseyPhase.PATH_ENTRY:
                text = await self.listen("Your path")
                if not text or self.handle_command(text):
                    continue
                if text.lower() == "quit":
                    return False
                try:
                    odyssey.submit_path(text)
                except ValidationError as e:
                    print(f"   ⚠ {e}")
                continue

            for dimension in ODYSSEY_DIMENSIONS:
                if dimension.id not in odyssey.missing_dimensions():
                    continue
                while True:
                    raw = (await asyncio.to_thread(
                        input, f"   {dimension.label} ({dimension.description}) 1-5: "
                    )).strip()
                    if raw.lower() == "quit":
                        return False
                    try:
                        odyssey.rate(dimension.id, int(raw))
                        break
                    except ValueError:
                        print("   Please enter a whole number from 1 to 5.")
                    except ValidationError as e:
                        print(f"   ⚠ {e}")
            odyssey.finish_path()
        return True


def remember_profile(store, user_id: str, name=None, email=None):
    """Save the name and email given on the command line; fields left out keep their stored value."""
    if not name and not email:
        return
    existing = store.get_user(user_id)
    store.save_user(UserProfile(
        user_id,
        name or (existing.name if existing else ""),
        email or (existing.email if existing else ""),
    ))


async def run_interview(args, settings) -> int:
    store = JsonSessionStore(settings.storage.sessions_dir)
    remember_profile(store, args.user, args.name, args.email)

    llm = LLMManager(settings=settings.llm)
    if not llm.is_available:
        print("No LLM provider configured (set OPENAI_API_KEY or GROQ_API_KEY).")
        print("The interview will continue without coaching replies.\n")
    coach = CoachingResponseGenerator(llm, timeout=settings.llm.coaching_timeout)

    voice = None
    if not args.text:
        from .voice.controller import VoiceController
        from .voice.devices import MicrophoneRecorder, SpeakerPlayer
        from .voice.speech_to_text import WhisperTranscriber
        from .voice.text_to_speech import ElevenLabsSynthesizer

        recorder = MicrophoneRecorder() if MicrophoneRecorder.microphone_available() else None
        voice = VoiceController(
            synthesizer=ElevenLabsSynthesizer(
                api_key=settings.voice.elevenlabs_api_key or None,
                model=settings.voice.elevenlabs_model,
                timeout=settings.voice.tts_timeout,
            ),
            transcriber=WhisperTranscriber(
                model_size=args.model,
                language=args.language,
            ),
            player=SpeakerPlayer(),
            recorder=recorder,
            voice_id=args.voice.voice_id,
            on_error=lambda e: print(f"   ⚠ Transcription failed: {e}"),
            on_warning=lambda message: print(f"   ⚠ {message}"),
        )

    flow = InterviewFlowController(store, args.user, coach, voice=voice, voice_id=args.voice.voice_id)
    flow.start()

    terminal = TerminalInterview(flow, voice, typed=args.text)
    print("Commands: " + ", ".join(COMMANDS) + " (type 'help' for details)\n")

    try:
        if not await terminal.run_main():
            print("\nProgress saved. Run again to pick up where you left off.")
            return 0
        if flow.stage == FlowStage.ODYSSEY and not await terminal.run_odyssey():
            print("\nProgress saved. Run again to pick up where you left off.")
            return 0
    finally:
        if voice is not None:
            await voice.close()

    print("\n✅ Interview complete!")

    if llm.is_available:
        print("\nGenerating your synthesis...")
        user = store.get_user(args.user)
        answers = store.list_answers(flow.session.id)
        try:
            report = await SynthesisGenerator(llm, timeout=settings.llm.synthesis_timeout).generate(
                answers, user.name if user else None
            )
        except SynthesisUnavailableError as e:
            print(f"   Synthesis failed: {e}")
            return 1
        for name, value in report.to_dict().items():
            if value:
                print(f"\n{name.replace('_', ' ').upper()}\n{value}")
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Undercurrent Voice Career Discovery Interview",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start (or resume) a voice interview
  python -m undercurrent.voice_cli --name "Alex"

  # Typed answers only, no microphone or speaker
  python -m undercurrent.voice_cli --text

  # Pick a different coach voice
  python -m undercurrent.voice_cli --voice Domi

  # Test audio setup
  python -m undercurrent.voice_cli --test-audio
        """
    )

    parser.add_argument(
        "--user", "-u",
        default="local",
        help="User id for the saved session (default: local)"
    )

    parser.add_argument(
        "--name", "-n",
        default=None,
        help="Your first name, used in the synthesis"
    )

    parser.add_argument(
        "--email", "-e",
        default=None,
        help="Email address for the report"
    )

    parser.add_argument(
        "--model", "-m",
        default=None,
        choices=["tiny", "base", "small", "medium", "large-v3"],
        help="Whisper model size (default: WHISPER_MODEL or base)"
    )

    parser.add_argument(
        "--language", "-l",
        default=None,
        help="Language code (default: WHISPER_LANGUAGE or en)"
    )

    parser.add_argument(
        "--voice", "-v",
        default=None,
        help="Coach voice name or id (" + ", ".join(v.name for v in CURATED_VOICES) + ")"
    )

    parser.add_argument(
        "--text", "-t",
        action="store_true",
        help="Typed answers only (no microphone, no speaker)"
    )

    parser.add_argument(
        "--test-audio",
        action="store_true",
        help="Test audio input/output and exit"
    )

    args = parser.parse_args()
    settings = get_settings()
    configure_logging(settings.log_level, settings.json_logs)

    args.model = args.model or settings.voice.whisper_model
    args.language = args.language or settings.voice.whisper_language
    voice = resolve_voice(args.voice)
    if voice is None:
        print(f"Unknown voice '{args.voice}'. Choose one of: " + ", ".join(v.name for v in CURATED_VOICES))
        sys.exit(2)
    args.voice = voice

    print_header()

    if not check_dependencies(typed_only=args.text):
        sys.exit(1)

    if args.test_audio:
        success = test_audio(settings)
        sys.exit(0 if success else 1)

    try:
        sys.exit(asyncio.run(run_interview(args, settings)))
    except KeyboardInterrupt:
        print("\n\nInterview paused. Progress saved.")
        sys.exit(0)


if __name__ == "__main__":
    main()
