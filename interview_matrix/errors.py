# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

"""Run-level pipeline errors. The CLI maps these to exit code 1."""


class PipelineError(RuntimeError):
    """Raised when an analysis run cannot continue."""

    pass


class EmbeddingUnavailableError(PipelineError):
    """Raised when no embedding call of a run returned a vector."""

    pass
