from typing import Union


class AnalysisException(Exception):
    pass

class UnknownAlignerException(AnalysisException):
    def __init__(self, aligner_name: str, known_aligners, *args):
        super().__init__(f"Aligner \"{aligner_name}\" is unknown. Known aligners are: {', '.join(known_aligners)}.", *args)

class PlaceholderReadIdentifierException(AnalysisException):
    def __init__(self, file_path: str, read_identifier: str, *args):
        super().__init__(
            f"The reads in \"{file_path}\" do not have unique IDs (found \"{read_identifier}\"). "
            "They were generated when MinKNOW was producing UUIDs but the basecaller was not using them. "
            "Re-extract the reads with fixed IDs before analysing.", *args)

class NoReadsFoundException(AnalysisException):
    def __init__(self, read_type_name: str, *args):
        super().__init__(f"Unable to find any {read_type_name} reads to process.", *args)

class NoAlignmentsFoundException(AnalysisException):
    def __init__(self, read_type_name: str, *args):
        super().__init__(f"Unable to find any {read_type_name} alignments to process.", *args)

class MalformedSequenceFileException(AnalysisException):
    def __init__(self, file_path: str, reason: str, *args):
        super().__init__(f"Could not index \"{file_path}\": {reason}", *args)

class SequenceRangeException(AnalysisException, IndexError):
    def __init__(self, identifier: str, start: int, end: int, length: int, *args):
        super().__init__(f"Range {start}-{end} is not valid for \"{identifier}\" (length {length}).", *args)

class AlignmentFileReadException(AnalysisException):
    def __init__(self, file_path: str, reason: Union[str, None] = None, *args):
        message = f"Could not read alignment file \"{file_path}\""
        if reason is not None:
            message += f": {reason}"
        super().__init__(message, *args)

class UnknownReferenceException(AnalysisException, KeyError):
    def __init__(self, reference_name: str, *args):
        super().__init__(f"Reference \"{reference_name}\" was not found in the loaded references.", *args)

    def __str__(self):
        return str(self.args[0])

class ReferenceFileReadException(AnalysisException):
    def __init__(self, file_path: str, reason: str, *args):
        super().__init__(f"Could not load references from \"{file_path}\": {reason}", *args)
