"""
WhatsApp Client - Selenium-Based WhatsApp Web Automation
=========================================================

Drives WhatsApp Web in Chrome with a persistent profile directory, so a
linked session survives restarts. A monitor thread inspects the page and
emits lifecycle events (qr, ready, auth_failure, disconnected) and
incoming messages through the MessagingClient event API.
"""

import logging
import random
import re
import threading
import time
import uuid
from collections import OrderedDict
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union

from selenium import webdriver
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.chrome.service import Service as ChromeService
from selenium.webdriver.support.ui import WebDriverWait
from selenium.webdriver.support import expected_conditions as EC
from selenium.common.exceptions import (
    InvalidSessionIdException,
    NoSuchElementException,
    NoSuchWindowException,
    StaleElementReferenceException,
    TimeoutException,
    WebDriverException,
)
from webdriver_manager.chrome import ChromeDriverManager

from ..config.settings import DEFAULT_BROWSER_ARGS, WhatsAppSettings
from .media import IncomingMessage, MessageMedia, SentMessage
from .messaging_provider import (
    EVENT_AUTH_FAILURE,
    EVENT_DISCONNECTED,
    EVENT_MESSAGE,
    EVENT_QR,
    EVENT_READY,
    MessagingClient,
)

logger = logging.getLogger(__name__)


class WhatsAppClientError(Exception):
    """Base exception for WhatsApp client errors."""
    pass


class ClientStartupError(WhatsAppClientError):
    """Raised when the browser or WhatsApp Web fails to start."""
    pass


class SendFailedError(WhatsAppClientError):
    """Raised when WhatsApp Web does not accept a message."""
    pass


class WhatsAppBlockedError(WhatsAppClientError):
    """Raised when WhatsApp shows blocking/warning indicators."""
    pass


# Page kinds reported by _inspect_page()
PAGE_LOADING = "loading"
PAGE_QR = "qr"
PAGE_CHATS = "chats"
PAGE_BLOCKED = "blocked"

DISCONNECT_LOGOUT = "LOGOUT"
DISCONNECT_NAVIGATION = "NAVIGATION"

_AUTHOR_RE = re.compile(r"\]\s*(.*?):\s*$")


class WhatsAppWebClient(MessagingClient):
    """
    Selenium-based WhatsApp Web client.
    """

    WEB_URL = "https://web.whatsapp.com/"
    SEND_URL = "https://web.whatsapp.com/send?phone={phone}"

    # CSS Selectors - WhatsApp Web 2024/2025
    # Attribute-based where possible, class names change often
    SELECTORS = {
        "qr_container": "div[data-ref]",
        "chat_list": "#pane-side",
        "message_input": 'div[contenteditable="true"][data-tab="10"]',
        "message_input_alt": 'footer div[contenteditable="true"]',
        "outgoing_message": 'div[data-id^="false_"]',
        "incoming_message": 'div[data-id^="true_"]',
        "pre_plain_text": "div[data-pre-plain-text]",
        "unread_badge": '#pane-side span[aria-label*="unread message"]',
        "chat_title": '#main header span[dir="auto"]',
        "invalid_number": 'div[data-animate-modal-popup="true"]',
    }

    ATTACH_BUTTON_SELECTORS = [
        'span[data-icon="plus"]',
        'span[data-icon="plus-rounded"]',
        'span[data-icon="attach-menu-plus"]',
        'div[title="Attach"]',
        'button[title="Attach"]',
    ]

    MEDIA_INPUT_SELECTORS = [
        'input[type="file"][accept*="image"]',
        'input[type="file"][accept*="video"]',
    ]

    DOCUMENT_INPUT_SELECTORS = [
        'input[type="file"][accept="*"]',
        'input[type="file"]',
    ]

    CAPTION_SELECTORS = [
        'div[contenteditable="true"][aria-label="Add a caption"]',
        'div[contenteditable="true"][aria-placeholder="Add a caption"]',
        'div[contenteditable="true"][data-tab="undefined"]',
    ]

    SEND_BUTTON_SELECTORS = [
        'span[data-icon="send"]',
        'div[aria-label="Send"]',
        'button[aria-label="Send"]',
    ]

    BLOCK_INDICATORS = [
        "temporarily banned",
        "account is temporarily",
        "verify your phone",
        "unusual activity",
        "couldn't link device",
        "can't link new devices at this time",
    ]

    # Time allowed for WhatsApp Web to open a chat or finish an upload
    CHAT_OPEN_TIMEOUT = 30
    UPLOAD_TIMEOUT = 60
    SENT_ID_TIMEOUT = 10

    # Kind of media shown inside an incoming message bubble
    MEDIA_KIND_SELECTORS = [
        ("image", 'img[src^="blob:"]'),
        ("video", "video"),
        ("audio", 'span[data-icon="audio-play"], div[data-icon="audio-play"]'),
    ]

    # Incoming message ids remembered to avoid emitting a message twice
    MAX_SEEN_INCOMING = 5000

    # Consecutive unexpected WebDriver errors before the browser counts as gone
    MAX_MONITOR_ERRORS = 3

    def __init__(
        self,
        session_dir: Union[str, Path] = ".session",
        headless: bool = True,
        browser_args: Iterable[str] = DEFAULT_BROWSER_ARGS,
        monitor_interval: float = 2.0,
        typing_delay: Tuple[float, float] = (0.1, 0.3),
        driver_factory: Optional[Callable[[], webdriver.Chrome]] = None,
    ):
        super().__init__()
        self._session_dir = Path(session_dir)
        self._headless = headless
        self._browser_args = tuple(browser_args)
        self._monitor_interval = monitor_interval
        self._typing_delay = typing_delay
        self._driver_factory = driver_factory or self._create_driver

        self.driver = None
        self._driver_lock = threading.RLock()
        self._stop = threading.Event()
        self._monitor_thread: Optional[threading.Thread] = None

        self._logged_in = False
        self._auth_failed = False
        self._last_qr: Optional[str] = None
        self._seen_incoming: "OrderedDict[str, None]" = OrderedDict()

    @classmethod
    def from_settings(cls, settings: WhatsAppSettings) -> "WhatsAppWebClient":
        return cls(
            session_dir=settings.session_dir,
            headless=settings.headless,
            browser_args=settings.browser_args,
            monitor_interval=settings.monitor_interval,
            typing_delay=(settings.min_typing_delay, settings.max_typing_delay),
        )

    @property
    def is_logged_in(self) -> bool:
        return self._logged_in

    # ── Lifecycle ──────────────────────────────────────────────────

    def _create_driver(self) -> webdriver.Chrome:
        """Create and configure Chrome WebDriver."""
        options = webdriver.ChromeOptions()

        if self._headless:
            options.add_argument("--headless=new")
        else:
            options.add_argument("--start-maximized")

        for arg in self._browser_args:
            options.add_argument(arg)

        profile_dir = self._session_dir.resolve()
        options.add_argument(f"--user-data-dir={profile_dir}")
        logger.info(f"Using Chrome profile at: {profile_dir}")

        service = ChromeService(ChromeDriverManager().install())
        return webdriver.Chrome(service=service, options=options)

    def _navigate_to_whatsapp(self) -> None:
        """Navigate to WhatsApp Web."""
        self.driver.get(self.WEB_URL)
        logger.info("Opened WhatsApp Web")

    def initialize(self) -> None:
        """Launch the browser, open WhatsApp Web and start the page monitor."""
        if self.driver is not None:
            raise WhatsAppClientError("Client already initialized")

        self._session_dir.mkdir(parents=True, exist_ok=True)
        try:
            self.driver = self._driver_factory()
            self._navigate_to_whatsapp()
        except Exception as e:
            self._quit_driver()
            raise ClientStartupError(f"Failed to launch WhatsApp Web: {e}") from e

        self._stop.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitor_loop, name="whatsapp-monitor", daemon=True
        )
        self._monitor_thread.start()

    def destroy(self) -> None:
        """Stop the monitor and close the browser."""
        self._stop.set()
        thread = self._monitor_thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=self._monitor_interval + 5)
        self._monitor_thread = None
        self._quit_driver()
        self._logged_in = False
        self._last_qr = None

    def _quit_driver(self) -> None:
        with self._driver_lock:
            if self.driver is None:
                return
            try:
                self.driver.quit()
                logger.info("Browser closed")
            except WebDriverException as e:
                logger.warning(f"Error closing browser: {e}")
            finally:
                self.driver = None

    # ── Page monitor ───────────────────────────────────────────────

    def _monitor_loop(self) -> None:
        errors = 0
        while not self._stop.is_set():
            try:
                self.tick()
                errors = 0
            except (StaleElementReferenceException, NoSuchElementException) as e:
                logger.debug(f"Page changed during check: {e}")
            except (InvalidSessionIdException, NoSuchWindowException) as e:
                self._browser_gone(e)
                return
            except WebDriverException as e:
                errors += 1
                logger.warning(f"Browser check failed ({errors}/{self.MAX_MONITOR_ERRORS}): {e}")
                if errors >= self.MAX_MONITOR_ERRORS:
                    self._browser_gone(e)
                    return
            self._stop.wait(self._monitor_interval)

    def _browser_gone(self, error: Exception) -> None:
        if self._stop.is_set():
            return
        logger.error(f"Lost connection to the browser: {error}")
        self._logged_in = False
        self.emit(EVENT_DISCONNECTED, DISCONNECT_NAVIGATION)

    def tick(self) -> None:
        """Inspect the page once and emit whatever changed since the last tick."""
        with self._driver_lock:
            if self.driver is None:
                return
            page, detail = self._inspect_page()
            incoming: List[IncomingMessage] = []
            if page == PAGE_CHATS and self._logged_in and self.listener_count(EVENT_MESSAGE):
                incoming = self._collect_incoming()

        if page == PAGE_BLOCKED:
            self._logged_in = False
            if not self._auth_failed:
                self._auth_failed = True
                self.emit(EVENT_AUTH_FAILURE, detail)
            return

        if page == PAGE_CHATS:
            self._auth_failed = False
            if not self._logged_in:
                self._logged_in = True
                self._last_qr = None
                self.emit(EVENT_READY)
            for message in incoming:
                self.emit(EVENT_MESSAGE, message)
            return

        if page == PAGE_QR:
            self._auth_failed = False
            if self._logged_in:
                self._logged_in = False
                self.emit(EVENT_DISCONNECTED, DISCONNECT_LOGOUT)
            if detail and detail != self._last_qr:
                self._last_qr = detail
                self.emit(EVENT_QR, detail)

    def _inspect_page(self) -> Tuple[str, Optional[str]]:
        """Classify the current page. Returns (page kind, detail)."""
        indicator = self._check_for_blocks()
        if indicator:
            return PAGE_BLOCKED, indicator

        if self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["chat_list"]):
            return PAGE_CHATS, None

        qr_elements = self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["qr_container"])
        if qr_elements:
            return PAGE_QR, qr_elements[0].get_attribute("data-ref")

        return PAGE_LOADING, None

    def _check_for_blocks(self) -> Optional[str]:
        """Return the first blocking/warning indicator found on the page."""
        page_text = self.driver.page_source.lower()
        for indicator in self.BLOCK_INDICATORS:
            if indicator in page_text:
                logger.error(f"Block indicator detected: {indicator}")
                return indicator
        return None

    # ── Sending ────────────────────────────────────────────────────

    def send_message(self, chat_id: str, content: Union[str, MessageMedia]) -> SentMessage:
        """Open the chat for `chat_id` and send text or media."""
        if self.driver is None:
            raise WhatsAppClientError("Client not initialized")

        has_media = isinstance(content, MessageMedia)
        body = (content.caption or "") if has_media else content

        with self._driver_lock:
            try:
                if self._check_for_blocks():
                    raise WhatsAppBlockedError("WhatsApp blocking detected")

                self._open_chat(chat_id)
                previous_id = self._latest_outgoing_id()

                if has_media:
                    self._send_media(content)
                else:
                    self._type_and_send(content)

                message_id = self._wait_for_sent_id(previous_id)
            except TimeoutException as e:
                raise SendFailedError(f"Timed out sending to {chat_id}") from e
            except WebDriverException as e:
                raise SendFailedError(f"Browser error sending to {chat_id}: {e.msg}") from e

        if not message_id:
            message_id = f"false_{chat_id}_{uuid.uuid4().hex[:20].upper()}"
            logger.warning(f"Could not read id of sent message, using {message_id}")

        return SentMessage(id=message_id, chat_id=chat_id, body=body, has_media=has_media)

    @staticmethod
    def _phone_from_chat_id(chat_id: str) -> str:
        phone = chat_id.split("@", 1)[0]
        if not phone.isdigit():
            raise SendFailedError(f"Invalid chat id: {chat_id}")
        return phone

    def _open_chat(self, chat_id: str) -> None:
        """Open the chat through the click-to-chat URL."""
        phone = self._phone_from_chat_id(chat_id)
        logger.debug(f"Opening chat with: {phone}")
        self.driver.get(self.SEND_URL.format(phone=phone))

        WebDriverWait(self.driver, self.CHAT_OPEN_TIMEOUT).until(
            lambda d: self._find_message_input() or self._find_invalid_number_popup()
        )
        if self._find_message_input() is None:
            raise SendFailedError(f"Phone number {phone} is not on WhatsApp")
        logger.debug(f"Chat opened successfully: {phone}")

    def _find_invalid_number_popup(self):
        popups = self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["invalid_number"])
        for popup in popups:
            if "invalid" in (popup.text or "").lower():
                return popup
        return None

    def _find_message_input(self):
        """Find the message input box with multiple fallback selectors."""
        selectors_to_try = [
            self.SELECTORS["message_input"],
            self.SELECTORS["message_input_alt"],
            'div[title="Type a message"]',
        ]
        return self._find_first(selectors_to_try)

    def _find_first(self, selectors: Iterable[str]):
        for selector in selectors:
            try:
                return self.driver.find_element(By.CSS_SELECTOR, selector)
            except NoSuchElementException:
                continue
        return None

    def _wait_for_first(self, selectors: List[str], timeout: float, clickable: bool = False):
        condition = EC.element_to_be_clickable if clickable else EC.presence_of_element_located
        return WebDriverWait(self.driver, timeout).until(
            EC.any_of(*[condition((By.CSS_SELECTOR, s)) for s in selectors])
        )

    def _random_delay(self, min_s: Optional[float] = None, max_s: Optional[float] = None) -> None:
        """Add human-like random delay."""
        low, high = self._typing_delay
        time.sleep(random.uniform(low if min_s is None else min_s, high if max_s is None else max_s))

    def _type_text(self, element, text: str) -> None:
        """Type text in chunks; line breaks become Shift+Enter."""
        lines = text.split("\n")
        for index, line in enumerate(lines):
            chunk_size = 50
            for i in range(0, len(line), chunk_size):
                element.send_keys(line[i:i + chunk_size])
                self._random_delay()
            if index < len(lines) - 1:
                element.send_keys(Keys.SHIFT, Keys.ENTER)

    def _type_and_send(self, text: str) -> None:
        """Send a text message in the current chat."""
        input_box = self._find_message_input()
        if not input_box:
            raise SendFailedError("Could not find message input box")

        input_box.click()
        self._random_delay()
        self._type_text(input_box, text)
        self._random_delay()
        input_box.send_keys(Keys.ENTER)
        logger.debug(f"Sent message: {text[:50]}...")

    def _send_media(self, media: MessageMedia) -> None:
        """Attach a file (written from the payload) and send it with its caption."""
        path = media.write_temp_file()
        try:
            attach = self._wait_for_first(self.ATTACH_BUTTON_SELECTORS, 15, clickable=True)
            attach.click()
            self._random_delay()

            is_visual = media.mimetype.startswith(("image/", "video/"))
            selectors = self.MEDIA_INPUT_SELECTORS if is_visual else self.DOCUMENT_INPUT_SELECTORS
            file_input = self._wait_for_first(selectors, 10)
            file_input.send_keys(str(path))

            if media.caption:
                caption_box = self._wait_for_first(self.CAPTION_SELECTORS, 15)
                caption_box.click()
                self._type_text(caption_box, media.caption)

            send_button = self._wait_for_first(self.SEND_BUTTON_SELECTORS, self.UPLOAD_TIMEOUT, clickable=True)
            send_button.click()
            logger.debug(f"Sent media: {media.default_filename()} ({media.mimetype})")

            # The browser reads the file while uploading
            WebDriverWait(self.driver, self.UPLOAD_TIMEOUT).until_not(
                EC.presence_of_element_located((By.CSS_SELECTOR, self.SEND_BUTTON_SELECTORS[0]))
            )
        finally:
            path.unlink(missing_ok=True)

    def _latest_outgoing_id(self) -> Optional[str]:
        elements = self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["outgoing_message"])
        if not elements:
            return None
        try:
            return elements[-1].get_attribute("data-id")
        except StaleElementReferenceException:
            return None

    def _wait_for_sent_id(self, previous_id: Optional[str]) -> Optional[str]:
        deadline = time.time() + self.SENT_ID_TIMEOUT
        while time.time() < deadline:
            current = self._latest_outgoing_id()
            if current and current != previous_id:
                return current
            time.sleep(0.5)
        return None

    # ── Receiving ──────────────────────────────────────────────────

    def _collect_incoming(self) -> List[IncomingMessage]:
        """Open the first unread chat and read its unread messages."""
        badges = self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["unread_badge"])
        if not badges:
            return []

        badge = badges[0]
        try:
            unread = int(badge.text.strip() or "1")
        except ValueError:
            unread = 1

        row = badge.find_element(By.XPATH, "./ancestor::div[@role='listitem' or @role='row'][1]")
        row.click()
        time.sleep(1)
        return self._read_new_incoming(unread)

    def _read_new_incoming(self, limit: int) -> List[IncomingMessage]:
        elements = self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["incoming_message"])
        chat_name = self._current_chat_name()

        messages = []
        for element in elements[-limit:]:
            try:
                msg_id = element.get_attribute("data-id")
                if not msg_id or not self._remember_incoming(msg_id):
                    continue
                media_type = self._media_type(element)
                messages.append(IncomingMessage(
                    id=msg_id,
                    chat_id=self._chat_id_from_message_id(msg_id),
                    body=self._extract_text_from_message(element),
                    chat_name=chat_name,
                    author=self._extract_author(element),
                    has_media=media_type is not None,
                    media_type=media_type,
                ))
            except StaleElementReferenceException:
                continue
        return messages

    def _remember_incoming(self, msg_id: str) -> bool:
        """Record `msg_id`; False if it was already seen. Keeps the newest ids only."""
        if msg_id in self._seen_incoming:
            return False
        self._seen_incoming[msg_id] = None
        while len(self._seen_incoming) > self.MAX_SEEN_INCOMING:
            self._seen_incoming.popitem(last=False)
        return True

    def _media_type(self, element) -> Optional[str]:
        for kind, selector in self.MEDIA_KIND_SELECTORS:
            if element.find_elements(By.CSS_SELECTOR, selector):
                return kind
        return None

    @staticmethod
    def _chat_id_from_message_id(msg_id: str) -> str:
        # true_<chat id>_<key>
        parts = msg_id.split("_")
        return parts[1] if len(parts) > 2 else ""

    def _current_chat_name(self) -> Optional[str]:
        element = self._find_first([self.SELECTORS["chat_title"]])
        return element.text.strip() if element is not None and element.text else None

    def _extract_author(self, element) -> Optional[str]:
        holders = element.find_elements(By.CSS_SELECTOR, self.SELECTORS["pre_plain_text"])
        if not holders:
            return None
        match = _AUTHOR_RE.search(holders[0].get_attribute("data-pre-plain-text") or "")
        return match.group(1) if match else None

    def _extract_text_from_message(self, element) -> Optional[str]:
        """Extract text content from a message element."""
        text_selectors = [
            "span.selectable-text.copyable-text > span",
            "span.selectable-text.copyable-text",
            "span.selectable-text",
            'span[dir="ltr"]',
        ]

        for selector in text_selectors:
            for text_el in element.find_elements(By.CSS_SELECTOR, selector):
                text = text_el.text.strip()
                if text:
                    return text
        return None
