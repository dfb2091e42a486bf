"""PowerShell building blocks of generated migration scripts."""

PWSH_SHEBANG = '#!/usr/bin/env pwsh'

VERSION_BANNER = '# =========== Created with CLI version {version} ==========='

EXEC_FUNCTION_BLOCK = """
function Exec {
    param (
        [scriptblock]$ScriptBlock
    )
    & @ScriptBlock
    if ($lastexitcode -ne 0) {
        exit $lastexitcode
    }
}"""

EXEC_AND_GET_MIGRATION_ID_FUNCTION_BLOCK = """
function ExecAndGetMigrationID {
    param (
        [scriptblock]$ScriptBlock
    )
    $MigrationID = & @ScriptBlock | ForEach-Object {
        Write-Host $_
        $_
    } | Select-String -Pattern "\\(ID: (.+)\\)" | ForEach-Object { $_.matches.groups[1] }
    return $MigrationID
}"""

EXEC_BATCH_FUNCTION_BLOCK = """
function ExecBatch {
    param (
        [scriptblock[]]$ScriptBlocks
    )
    $Global:LastBatchFailures = 0
    foreach ($ScriptBlock in $ScriptBlocks)
    {
        & @ScriptBlock
        if ($lastexitcode -ne 0) {
            $Global:LastBatchFailures++
        }
    }
}"""

_PAT_DOCS = (
    'https://docs.github.com/en/migrations/using-github-enterprise-importer/'
    'preparing-to-migrate-with-github-enterprise-importer/'
    'managing-access-for-github-enterprise-importer'
)

VALIDATE_ADO_PAT = f"""
if (-not $env:ADO_PAT) {{
    Write-Error "ADO_PAT environment variable must be set to a valid Azure DevOps Personal Access Token with the appropriate scopes. For more information see {_PAT_DOCS}#personal-access-tokens-for-azure-devops"
    exit 1
}} else {{
    Write-Host "ADO_PAT environment variable is set and will be used to authenticate to Azure DevOps."
}}"""

VALIDATE_GH_PAT = f"""
if (-not $env:GH_PAT) {{
    Write-Error "GH_PAT environment variable must be set to a valid GitHub Personal Access Token with the appropriate scopes. For more information see {_PAT_DOCS}#creating-a-personal-access-token-for-github-enterprise-importer"
    exit 1
}} else {{
    Write-Host "GH_PAT environment variable is set and will be used to authenticate to GitHub."
}}"""

VALIDATE_BLOB_CREDENTIALS = """
$HasAwsCredentials = [bool]($env:AWS_ACCESS_KEY_ID -and $env:AWS_SECRET_ACCESS_KEY)
$HasAzureCredentials = [bool]$env:AZURE_STORAGE_CONNECTION_STRING
if ($HasAwsCredentials -and $HasAzureCredentials) {
    Write-Error "Both AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY and AZURE_STORAGE_CONNECTION_STRING are set. Set only one of them to choose where the migration archive is uploaded."
    exit 1
} elseif (-not $HasAwsCredentials -and -not $HasAzureCredentials) {
    Write-Error "Either AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY, or AZURE_STORAGE_CONNECTION_STRING environment variables must be set to upload the migration archive."
    exit 1
} elseif ($HasAwsCredentials) {
    Write-Host "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY environment variables are set and will be used to upload the migration archive to AWS S3."
} else {
    Write-Host "AZURE_STORAGE_CONNECTION_STRING environment variable is set and will be used to upload the migration archive to Azure Blob Storage."
}"""

COUNTERS_BLOCK = """
$Succeeded = 0
$Failed = 0
$RepoMigrations = [ordered]@{}"""

SUMMARY_BLOCK = """
Write-Host =============== Summary ===============
Write-Host Total number of successful migrations: $Succeeded
Write-Host Total number of failed migrations: $Failed

if ($Failed -ne 0) {
    exit 1
}"""
