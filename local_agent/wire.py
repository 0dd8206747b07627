# Client → Server control
MSG_START = "start"
MSG_STOP = "stop"

# Client → Server recognition (browser SpeechRecognition)
MSG_RECOGNITION_RESULT = "recognition_result"
MSG_RECOGNITION_ERROR = "recognition_error"
MSG_RECOGNITION_END = "recognition_end"

# Client → Server synthesis (browser speechSynthesis)
MSG_SPEAKING_STATE = "speaking_state"
MSG_VOICES = "voices"

# Server → Client recognition commands
MSG_RECOGNITION_START = "recognition_start"
MSG_RECOGNITION_STOP = "recognition_stop"

# Server → Client synthesis commands
MSG_SPEAK = "speak"
MSG_CANCEL_SPEECH = "cancel_speech"

# Server → Client agent status
MSG_AVAILABILITY = "availability"
MSG_EVENT = "event"
