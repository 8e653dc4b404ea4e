# user_agent.py
import locale
import platform
from typing import Optional

LIBRARY_ID = "com.usebutton.merchant"
LIBRARY_VERSION = "0.1.0"


class UserAgent:
    def __init__(
        self,
        library_version: str = LIBRARY_VERSION,
        application_id: Optional[str] = None,
        application_version: Optional[str] = None,
        locale_name: Optional[str] = None,
    ):
        self.library_version = library_version
        self.application_id = application_id
        self.application_version = application_version
        self.locale_name = locale_name

    def _locale(self) -> str:
        if self.locale_name:
            return self.locale_name
        try:
            name = locale.getlocale()[0]
        except ValueError:
            name = None
        return name or "en_US"

    @property
    def string_representation(self) -> str:
        """
        com.usebutton.merchant/1.2.0 (Linux 6.1.0; x86_64; com.example.app/3.4; en_US)
        """
        parts = [f"{platform.system() or 'unknown'} {platform.release()}".strip()]
        parts.append(platform.machine() or "unknown")
        if self.application_id:
            app = self.application_id
            if self.application_version:
                app += f"/{self.application_version}"
            parts.append(app)
        parts.append(self._locale())
        return f"{LIBRARY_ID}/{self.library_version} ({'; '.join(parts)})"

    def __str__(self) -> str:
        return self.string_representation
