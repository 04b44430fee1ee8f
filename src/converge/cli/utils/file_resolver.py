"""Declaration file path resolution for CLI."""

from pathlib import Path

DEFAULT_FILENAMES = ("converge.yaml", "converge.yml", "converge.json", "resources.yaml")


def resolve_file_path(file_path: str) -> Path:
    """
    Resolve a declaration file path.
    
    A directory resolves to the first default declaration file it contains
    (converge.yaml, converge.yml, converge.json, resources.yaml).
    
    Args:
        file_path: User-provided file or directory path
        
    Returns:
        Resolved Path object
        
    Raises:
        FileNotFoundError: If no declaration file can be found
    """
    path = Path(file_path)
    if not path.is_absolute():
        path = Path.cwd() / path
    path = path.resolve()
    
    if not path.exists():
        raise FileNotFoundError(
            f"File not found: {file_path}. Please check the file path and try again."
        )
    
    if path.is_dir():
        for name in DEFAULT_FILENAMES:
            candidate = path / name
            if candidate.is_file():
                return candidate
        raise FileNotFoundError(
            f"No declaration file in {file_path}. Expected one of: {', '.join(DEFAULT_FILENAMES)}"
        )
    
    if not path.is_file():
        raise FileNotFoundError(
            f"Path is not a file: {file_path}. Please provide a valid file path."
        )
    
    return path
