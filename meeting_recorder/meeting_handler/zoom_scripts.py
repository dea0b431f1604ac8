"""
Zoom web client selectors and in-page JavaScript.

This module centralizes the Zoom UI selectors and the recorder script used by
the browser driver. Zoom's web client changes often, so selectors may need
periodic maintenance.
"""

# Name of the binding exposed to the page for shipping audio chunks
CHUNK_BINDING = "sendChunkToServer"

# =============================================================================
# DOM SELECTORS
# =============================================================================

ZOOM_SELECTORS = {
    # "Join from your browser" link on the launch page
    "join_from_browser": [
        "a.join-from-browser",
        'a:has-text("Join from your browser")',
        'a:has-text("Join from Browser")',
    ],

    # Fallback: direct web client link
    "web_client_link": [
        'a[href*="join?"]',
        'a[href*="/wc/"]',
    ],

    # Optional sign-in form (bot account)
    "email_input": ['input[type="email"]'],
    "password_input": ['input[type="password"]'],
    "submit_button": ['button[type="submit"]'],

    # Meeting passcode prompt
    "passcode_input": [
        'input[aria-label*="Passcode"]',
        'input[placeholder*="passcode"]',
        'input[placeholder*="Passcode"]',
        'input[type="password"]',
    ],

    # Display name on the pre-join screen
    "name_input": [
        "#input-for-name",
        'input[placeholder*="Your Name"]',
        'input[aria-label*="name"]',
    ],

    # Controls that only exist while in the meeting
    "in_meeting": [
        'button[aria-label*="Leave"]',
        'button[title*="Leave"]',
        '[class*="footer-button"]',
        '[id*="footer"]',
        "audio",
        "video",
    ],

    # Banners shown when the host ends the meeting or removes the bot
    "meeting_ended": [
        'text="This meeting has been ended by host"',
        'text="The meeting has been ended"',
        'text="You have been removed"',
        'text="This meeting has ended"',
    ],
}


def get_selectors_for(element_type: str) -> list:
    """
    Get list of selectors for a specific element type.

    Args:
        element_type: Key from ZOOM_SELECTORS dict

    Returns:
        List of CSS/text selectors to try
    """
    return ZOOM_SELECTORS.get(element_type, [])


def get_combined_selector(element_type: str) -> str:
    """Join all selectors of a type into one comma-separated CSS selector."""
    return ", ".join(s for s in get_selectors_for(element_type) if not s.startswith("text="))


# =============================================================================
# JAVASCRIPT
# =============================================================================

# Mixes every audio/video element into one MediaRecorder and ships each
# timeslice to the host as base64. Resolves once the recorder is running or
# when no media appeared within waitMs.
START_RECORDER_JS = """
async ({ binding, timesliceMs, waitMs }) => {
    if (window.__recorderStarted) {
        return { started: true, message: "already started" };
    }

    const waitForMedia = (timeout) => new Promise((resolve) => {
        const start = Date.now();
        const check = () => {
            const els = document.querySelectorAll('audio, video');
            if (els.length) return resolve(true);
            if (Date.now() - start > timeout) return resolve(false);
            setTimeout(check, 500);
        };
        check();
    });

    const toBase64 = (buffer) => {
        const bytes = new Uint8Array(buffer);
        let binary = '';
        const step = 0x8000;
        for (let i = 0; i < bytes.length; i += step) {
            binary += String.fromCharCode.apply(null, bytes.subarray(i, i + step));
        }
        return btoa(binary);
    };

    try {
        const found = await waitForMedia(waitMs);
        const mediaEls = document.querySelectorAll('audio, video');
        if (!found || mediaEls.length === 0) {
            return { started: false, error: "no audio/video elements found" };
        }

        const audioContext = new (window.AudioContext || window.webkitAudioContext)();
        const dest = audioContext.createMediaStreamDestination();

        let connected = 0;
        mediaEls.forEach((el) => {
            try {
                const source = el.srcObject
                    ? audioContext.createMediaStreamSource(el.srcObject)
                    : audioContext.createMediaElementSource(el);
                source.connect(dest);
                source.connect(audioContext.destination);
                el.dataset.recorderConnected = 'true';
                connected += 1;
            } catch (e) {
                console.warn('Failed to connect media element', e);
            }
        });

        // Late joiners: connect media elements added after the recorder starts
        const observer = new MutationObserver(() => {
            document.querySelectorAll('audio, video').forEach((el) => {
                if (el.dataset.recorderConnected) return;
                try {
                    const source = el.srcObject
                        ? audioContext.createMediaStreamSource(el.srcObject)
                        : audioContext.createMediaElementSource(el);
                    source.connect(dest);
                    el.dataset.recorderConnected = 'true';
                } catch (e) {
                    console.warn('Failed to connect new media element', e);
                }
            });
        });
        observer.observe(document.body, { childList: true, subtree: true });

        const mimeType = MediaRecorder.isTypeSupported('audio/webm;codecs=opus')
            ? 'audio/webm;codecs=opus'
            : 'audio/webm';
        const recorder = new MediaRecorder(dest.stream, { mimeType });

        recorder.ondataavailable = async (ev) => {
            if (!ev.data || ev.data.size === 0) return;
            const buffer = await ev.data.arrayBuffer();
            if (window[binding]) {
                await window[binding](toBase64(buffer));
            }
        };
        recorder.start(timesliceMs);

        window.__recorderStarted = true;
        window.__recorder = recorder;
        window.__recorderObserver = observer;
        window.__recorderContext = audioContext;

        return { started: true, mimeType, connected };
    } catch (err) {
        return { started: false, error: String(err && err.message || err) };
    }
}
"""

STOP_RECORDER_JS = """
() => {
    if (window.__recorder && window.__recorder.state !== 'inactive') {
        window.__recorder.stop();
    }
    if (window.__recorderObserver) {
        window.__recorderObserver.disconnect();
    }
    return true;
}
"""
