from typing import Optional


class ValidationError(Exception):
    """スクリプトや設定のバリデーションエラーを表す例外。"""

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        column_number: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.line_number = line_number
        self.column_number = column_number

    def __str__(self):
        if self.line_number is not None:
            return f"Validation Error: {self.message} (Line: {self.line_number}, Column: {self.column_number})"
        return f"Validation Error: {self.message}"


class PipelineError(Exception):
    """パイプライン処理で発生したエラーを表す例外。"""

    label = "Pipeline Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return f"{self.label}: {self.message}"


class ProbeError(PipelineError):
    """ffprobe で長さを取得できなかったことを表す例外。"""

    label = "Probe Error"


class AssetError(PipelineError):
    """必須アセット（背景・キャラクター画像）が見つからない。"""

    label = "Asset Error"


class SynthesisError(PipelineError):
    """音声合成プロバイダの失敗。"""

    label = "Synthesis Error"


class RenderError(PipelineError):
    """エンコーダの失敗、または出力ファイルが空・欠落している。"""

    label = "Render Error"
